# Overview: Service-layer operations for shipping batches; encapsulates business logic and database work.

"""
Shipping Batch Lifecycle

STATE MACHINE:
    open             -> ready_to_ship, cancelled
    ready_to_ship    -> in_transit, cancelled
    in_transit       -> ready_for_pickup
    ready_for_pickup -> delivered
    delivered        -> (terminal)
    cancelled        -> (terminal)

CASCADE:
A batch status change and the matching change on every member bag are one
unit of work. Each member is checked against the bag transition table;
members already at the target are left alone, and one disallowed member
rolls back the whole change (batch row included).

MEMBERSHIP:
- Bags are added only while the batch is open, only from ready_to_ship, and
  only if they are not in another batch. All named bags are added or none.
- Cancelling a batch releases its members; their statuses are untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import BagOfHope, ShippingBatch
from ..repositories import BagRepository, BatchRepository
from ..time_utils import normalize_datetime, parse_iso_datetime, utcnow
from ..validation import require_choice
from .bag_service import can_transition as bag_can_transition
from .concurrency import unit_of_work

logger = logging.getLogger(__name__)


BATCH_STATUSES = (
    "open",
    "ready_to_ship",
    "in_transit",
    "ready_for_pickup",
    "delivered",
    "cancelled",
)

BATCH_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "open": frozenset({"ready_to_ship", "cancelled"}),
    "ready_to_ship": frozenset({"in_transit", "cancelled"}),
    "in_transit": frozenset({"ready_for_pickup"}),
    "ready_for_pickup": frozenset({"delivered"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

# Batch status -> status pushed onto member bags (None: members untouched)
BATCH_TO_BAG_STATUS: dict[str, Optional[str]] = {
    "open": None,
    "ready_to_ship": "ready_to_ship",
    "in_transit": "in_transit",
    "ready_for_pickup": "ready_for_pickup",
    "delivered": "delivered",
    "cancelled": None,
}

# Batches that may still be deleted outright
DELETABLE_STATUSES = frozenset({"open", "cancelled"})


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in BATCH_STATUS_TRANSITIONS.get(from_status, frozenset())


def format_batch_number(prefix: str, year: int, number: int) -> str:
    """B-2026-0001 style; the counter widens past 9999 rather than wrapping."""
    return f"{prefix}-{year}-{number:04d}"


class BatchLifecycleManager:
    def __init__(self, session, *, batch_number_prefix: str = "B"):
        self.session = session
        self.batch_number_prefix = batch_number_prefix
        self.batches = BatchRepository(session)
        self.bags = BagRepository(session)

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create_batch(
        self,
        courier_name: Optional[str] = None,
        notes: Optional[str] = None,
        scheduled_pickup_at=None,
    ) -> ShippingBatch:
        """
        Open a new batch with the next number for the current year.

        scheduled_pickup_at accepts a datetime or an ISO-8601 string.
        """
        if isinstance(scheduled_pickup_at, str):
            try:
                scheduled_pickup_at = parse_iso_datetime(scheduled_pickup_at)
            except ValueError as exc:
                raise ValidationError("scheduled_pickup_at must be an ISO-8601 datetime") from exc
        elif isinstance(scheduled_pickup_at, datetime):
            scheduled_pickup_at = normalize_datetime(scheduled_pickup_at)
        elif scheduled_pickup_at is not None:
            raise ValidationError("scheduled_pickup_at must be a datetime")

        with unit_of_work(self.session):
            now = utcnow()
            number = self.batches.next_sequence_number(str(now.year))
            batch = self.batches.add(ShippingBatch(
                batch_number=format_batch_number(self.batch_number_prefix, now.year, number),
                status="open",
                courier_name=(courier_name or "").strip() or None,
                notes=(notes or "").strip() or None,
                scheduled_pickup_at=scheduled_pickup_at,
                created_at=now,
            ))

        logger.info("Opened batch %s (id=%s)", batch.batch_number, batch.id)
        return batch

    def get_batch(self, batch_id: int) -> ShippingBatch:
        batch = self.batches.get(batch_id)
        if batch is None:
            raise NotFoundError("Batch", batch_id)
        return batch

    def get_batch_by_number(self, batch_number: str) -> ShippingBatch:
        """Lookup used by the batch label QR scan."""
        batch = self.batches.get_by_number((batch_number or "").strip())
        if batch is None:
            raise NotFoundError("Batch", batch_number)
        return batch

    def list_batches(self, status=None) -> list[ShippingBatch]:
        """status: None for all, one status, or a list of statuses."""
        if status is None:
            return self.batches.list()
        statuses = [status] if isinstance(status, str) else list(status)
        for s in statuses:
            require_choice("status", s, BATCH_STATUSES)
        return self.batches.list(statuses=statuses)

    def get_batch_summary(self, batch_id: int) -> dict:
        batch = self.get_batch(batch_id)
        bags = self.bags.list(batch_id=batch.id)
        data = batch.to_dict()
        data["bag_count"] = len(bags)
        data["bags"] = [b.to_dict() for b in bags]
        return data

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_bags_to_batch(self, batch_id: int, bag_ids: Iterable[int]) -> list[BagOfHope]:
        """
        Attach bags to an open batch.

        Raises:
            NotFoundError: unknown batch or bag
            InvalidTransitionError: batch is not open
            ValidationError: a bag is not ready_to_ship or sits in another batch
        """
        ids = list(dict.fromkeys(bag_ids))
        if not ids:
            raise ValidationError("No bags given")

        with unit_of_work(self.session):
            batch = self._lock(batch_id)
            if batch.status != "open":
                raise InvalidTransitionError(
                    "Batch", batch.status, "open",
                    entity_id=batch.id,
                    detail="bags can only be added to an open batch",
                )

            bags = self.bags.get_many_for_update(ids)
            found = {b.id for b in bags}
            for bag_id in ids:
                if bag_id not in found:
                    raise NotFoundError("Bag", bag_id)

            for bag in bags:
                if bag.status != "ready_to_ship":
                    raise ValidationError(f"Bag {bag.id} is {bag.status}, not ready_to_ship")
                if bag.batch_id is not None and bag.batch_id != batch.id:
                    raise ValidationError(f"Bag {bag.id} already belongs to batch {bag.batch_id}")

            for bag in bags:
                bag.batch_id = batch.id

        logger.info("Added %s bag(s) to batch %s", len(bags), batch.batch_number)
        return bags

    def remove_bag_from_batch(self, bag_id: int) -> BagOfHope:
        with unit_of_work(self.session):
            bag = self.bags.get_for_update(bag_id)
            if bag is None:
                raise NotFoundError("Bag", bag_id)
            if bag.batch_id is None:
                raise ValidationError(f"Bag {bag_id} is not in a batch")

            batch = self._lock(bag.batch_id)
            if batch.status != "open":
                raise InvalidTransitionError(
                    "Batch", batch.status, "open",
                    entity_id=batch.id,
                    detail="bags can only be removed from an open batch",
                )
            bag.batch_id = None

        logger.info("Removed bag %s from batch %s", bag_id, batch.batch_number)
        return bag

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def update_batch_status(
        self,
        batch_id: int,
        new_status: str,
        *,
        courier_name: Optional[str] = None,
        tracking_number: Optional[str] = None,
    ) -> ShippingBatch:
        """
        Move a batch and cascade the mapped status onto every member bag.

        in_transit stamps batch.picked_up_at and each bag's shipped_at;
        delivered stamps delivered_at on both. Batch and bags share one now.

        Raises:
            ValidationError: unknown status
            InvalidTransitionError: batch or any member may not make the move
        """
        require_choice("status", new_status, BATCH_STATUSES)

        with unit_of_work(self.session):
            batch = self._lock(batch_id)
            if not can_transition(batch.status, new_status):
                logger.warning("Rejected batch %s transition %s -> %s", batch.batch_number, batch.status, new_status)
                raise InvalidTransitionError("Batch", batch.status, new_status, entity_id=batch.id)

            now = utcnow()
            previous = batch.status
            batch.status = new_status
            if courier_name:
                batch.courier_name = courier_name
            if tracking_number:
                batch.tracking_number = tracking_number
            if new_status == "in_transit":
                batch.picked_up_at = now
            elif new_status == "delivered":
                batch.delivered_at = now

            members = self.bags.members_of_batch(batch.id, lock=True)
            if new_status == "cancelled":
                for bag in members:
                    bag.batch_id = None
            else:
                self._cascade(batch, members, BATCH_TO_BAG_STATUS[new_status], now)

        logger.info(
            "Batch %s: %s -> %s (%s member bag(s))",
            batch.batch_number, previous, new_status, len(members),
        )
        return batch

    def close_batch(self, batch_id: int) -> ShippingBatch:
        return self.update_batch_status(batch_id, "ready_to_ship")

    def mark_batch_picked_up(
        self,
        batch_id: int,
        courier_name: Optional[str] = None,
        tracking_number: Optional[str] = None,
    ) -> ShippingBatch:
        return self.update_batch_status(
            batch_id, "in_transit", courier_name=courier_name, tracking_number=tracking_number
        )

    def mark_batch_ready_for_pickup(self, batch_id: int) -> ShippingBatch:
        return self.update_batch_status(batch_id, "ready_for_pickup")

    def mark_batch_delivered(self, batch_id: int) -> ShippingBatch:
        return self.update_batch_status(batch_id, "delivered")

    def cancel_batch(self, batch_id: int) -> ShippingBatch:
        return self.update_batch_status(batch_id, "cancelled")

    def delete_batch(self, batch_id: int) -> None:
        """Delete an open or cancelled batch; members are detached first."""
        with unit_of_work(self.session):
            batch = self._lock(batch_id)
            if batch.status not in DELETABLE_STATUSES:
                raise InvalidTransitionError(
                    "Batch", batch.status, "deleted",
                    entity_id=batch.id,
                    detail="only open or cancelled batches can be deleted",
                )
            members = self.bags.members_of_batch(batch.id, lock=True)
            for bag in members:
                bag.batch_id = None
            self.session.flush()

            number = batch.batch_number
            self.batches.delete(batch)

        logger.info("Deleted batch %s (%s bag(s) detached)", number, len(members))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, batch_id: int) -> ShippingBatch:
        batch = self.batches.get_for_update(batch_id)
        if batch is None:
            raise NotFoundError("Batch", batch_id)
        return batch

    def _cascade(self, batch: ShippingBatch, members: list[BagOfHope], bag_status: Optional[str], now) -> None:
        if bag_status is None:
            return

        for bag in members:
            if bag.status == bag_status:
                continue
            if not bag_can_transition(bag.status, bag_status):
                logger.warning(
                    "Batch %s cascade blocked by bag %s (%s -> %s)",
                    batch.batch_number, bag.id, bag.status, bag_status,
                )
                raise InvalidTransitionError(
                    "Bag", bag.status, bag_status,
                    entity_id=bag.id,
                    detail=f"member of batch {batch.batch_number}",
                )
            bag.status = bag_status
            if bag_status == "in_transit":
                bag.shipped_at = now
            elif bag_status == "delivered":
                bag.delivered_at = now
        self.session.flush()
