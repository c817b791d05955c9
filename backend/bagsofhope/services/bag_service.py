# Overview: Service-layer operations for the Bag of Hope lifecycle; encapsulates business logic and database work.

"""
Bag of Hope Lifecycle

================================================================================
STATE MACHINE (authoritative; every status write goes through _transition):

    pending          -> picking, cancelled
    picking          -> packing, pending, cancelled
    packing          -> ready_to_ship, picking, cancelled
    ready_to_ship    -> in_transit, packing, cancelled
    in_transit       -> ready_for_pickup, delivered, ready_to_ship
    ready_for_pickup -> delivered, in_transit
    delivered        -> (terminal)
    cancelled        -> pending (re-open)

MILESTONES (stamped by the named operations, never by update_bag_status):
    complete_pick    -> picked_at
    complete_packing -> packed_at, packed_by
    ship_bag         -> shipped_at
    mark_delivered   -> delivered_at

RULES:
1. Bags are never deleted; cancel instead.
2. complete_pick records every pick row and advances the bag in ONE unit of
   work. If any pick fails nothing is written.
3. Cancelling, by any route, detaches the bag from its batch so a later
   batch cascade can not revive it.
4. While its batch is past open, a member may only move forward along
   SHIPPING_PATH (or be cancelled). Moving it back would block the cascade.
================================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import BagOfHope
from ..repositories import BagRepository, BatchRepository
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_bag, require_choice, validate_payload
from .concurrency import unit_of_work
from .inventory_service import InventoryLedger

logger = logging.getLogger(__name__)


BAG_STATUSES = (
    "pending",
    "picking",
    "packing",
    "ready_to_ship",
    "in_transit",
    "ready_for_pickup",
    "delivered",
    "cancelled",
)

BAG_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"picking", "cancelled"}),
    "picking": frozenset({"packing", "pending", "cancelled"}),
    "packing": frozenset({"ready_to_ship", "picking", "cancelled"}),
    "ready_to_ship": frozenset({"in_transit", "packing", "cancelled"}),
    "in_transit": frozenset({"ready_for_pickup", "delivered", "ready_to_ship"}),
    "ready_for_pickup": frozenset({"delivered", "in_transit"}),
    "delivered": frozenset(),
    "cancelled": frozenset({"pending"}),
}

# Forward order a batch pushes its members through
SHIPPING_PATH = ("ready_to_ship", "in_transit", "ready_for_pickup", "delivered")

# Fields ship_bag may record alongside the status change
SHIPPING_INFO_FIELDS = frozenset({
    "tracking_number",
    "shipping_carrier",
    "recipient_name",
    "recipient_phone",
    "delivery_address",
    "delivery_notes",
})

# Descriptive fields; status, batch and milestones are owned by the lifecycle
BAG_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "request_id",
        "child_first_name",
        "child_last_name",
        "birthday",
        "child_age",
        "child_age_group",
        "child_gender",
        "ethnicity",
        "pickup_location",
        "recipient_name",
        "recipient_phone",
        "delivery_address",
        "delivery_notes",
        "bag_embroidery_company",
        "bag_order_number",
        "bag_embroidery_color",
        "toiletry_bag_color",
        "toiletry_bag_labeled",
        "toy_activity",
        "tops",
        "bottoms",
        "pajamas",
        "underwear",
        "diaper_pullup",
        "shoes",
        "coat",
        "notes",
        "tracking_number",
        "shipping_carrier",
    }),
    required_on_create=frozenset({"child_age_group", "child_gender"}),
)

SHIPPING_POLICY = ModelValidationPolicy(writable_fields=SHIPPING_INFO_FIELDS)


def can_transition(from_status: str, to_status: str) -> bool:
    """True if the bag table allows from_status -> to_status."""
    return to_status in BAG_STATUS_TRANSITIONS.get(from_status, frozenset())


def allowed_transitions(status: str) -> list[str]:
    require_choice("status", status, BAG_STATUSES)
    return [s for s in BAG_STATUSES if s in BAG_STATUS_TRANSITIONS[status]]


@dataclass(frozen=True)
class PickItem:
    """One line of a pick list: how many of a category went into the bag."""
    category_id: int
    quantity: int
    condition: str = "new"


PickLike = Union[PickItem, dict]


def _coerce_pick(item: PickLike) -> PickItem:
    if isinstance(item, PickItem):
        return item
    if not isinstance(item, dict):
        raise ValidationError("Each pick must be a PickItem or a dict")
    try:
        return PickItem(
            category_id=item["category_id"],
            quantity=item["quantity"],
            condition=item.get("condition") or "new",
        )
    except KeyError as exc:
        raise ValidationError(f"Pick is missing {exc.args[0]}") from exc


class BagLifecycleManager:
    """
    Owns BagOfHope status and milestones.

    Takes the session at construction; the ledger defaults to one on the same
    session so pick rows and the status change share a transaction.
    """

    def __init__(self, session, ledger: Optional[InventoryLedger] = None):
        self.session = session
        self.bags = BagRepository(session)
        self.batches = BatchRepository(session)
        self.ledger = ledger if ledger is not None else InventoryLedger(session)

    # ------------------------------------------------------------------
    # Create / read / edit
    # ------------------------------------------------------------------

    def create_bag_of_hope(self, data: dict, *, commit: bool = True) -> BagOfHope:
        """
        Create a bag in status pending.

        Args:
            data: descriptive fields only (see BAG_POLICY)
            commit: False to fold into an enclosing unit (submission processing)

        Raises:
            ValidationError: unknown/lifecycle field, bad enum, missing demographics
        """
        with unit_of_work(self.session, commit=commit):
            patch = validate_payload(model=BagOfHope, payload=data, policy=BAG_POLICY, partial=False)
            enforce_rules_bag(patch)
            bag = self.bags.add(BagOfHope(status="pending", **patch))

        logger.info("Created bag %s (%s/%s)", bag.id, bag.child_age_group, bag.child_gender)
        return bag

    def get_bag(self, bag_id: int) -> BagOfHope:
        bag = self.bags.get(bag_id)
        if bag is None:
            raise NotFoundError("Bag", bag_id)
        return bag

    def update_bag_details(self, bag_id: int, updates: dict) -> BagOfHope:
        """Edit descriptive fields. Status, batch and milestones are rejected."""
        with unit_of_work(self.session):
            bag = self._lock(bag_id)
            patch = validate_payload(model=BagOfHope, payload=updates, policy=BAG_POLICY, partial=True)
            enforce_rules_bag(patch)
            for key, value in patch.items():
                setattr(bag, key, value)
        return bag

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def update_bag_status(self, bag_id: int, new_status: str, *, commit: bool = True) -> BagOfHope:
        """
        The single gate for bag status changes.

        Raises:
            NotFoundError: unknown bag
            ValidationError: unknown status
            InvalidTransitionError: change not allowed from the current status
        """
        with unit_of_work(self.session, commit=commit):
            bag = self._lock(bag_id)
            self._transition(bag, new_status)
        return bag

    def start_picking(self, bag_id: int) -> BagOfHope:
        return self.update_bag_status(bag_id, "picking")

    def complete_pick(self, bag_id: int, picks: Iterable[PickLike], *, created_by: Optional[str] = None) -> BagOfHope:
        """
        Record the bag's pick list and move it to packing.

        A pending bag is moved to picking first. Lines with quantity 0 are
        skipped. Every pick row, the level updates and the status change
        commit together or not at all.

        Raises:
            InsufficientInventoryError: a line exceeds on-hand (nothing written)
            InvalidTransitionError: bag is not pending/picking
        """
        items = [_coerce_pick(p) for p in picks]

        with unit_of_work(self.session):
            bag = self._lock(bag_id)
            if bag.status == "pending":
                self._transition(bag, "picking")
            # ready_to_ship -> packing is a re-pack, not a pick
            if bag.status != "picking":
                raise InvalidTransitionError(
                    "Bag", bag.status, "packing",
                    entity_id=bag.id,
                    detail="picks are only recorded for pending or picking bags",
                )

            recorded = 0
            for item in items:
                if not isinstance(item.quantity, int) or isinstance(item.quantity, bool) or item.quantity < 0:
                    raise ValidationError("pick quantity must be a non-negative integer")
                if item.quantity == 0:
                    continue
                self.ledger.record_pick(
                    item.category_id,
                    bag.id,
                    item.quantity,
                    item.condition,
                    created_by=created_by,
                    commit=False,
                )
                recorded += 1

            self._transition(bag, "packing")
            bag.picked_at = utcnow()

        logger.info("Bag %s picked: %s line(s)", bag.id, recorded)
        return bag

    def complete_packing(self, bag_id: int, packed_by: Optional[str] = None) -> BagOfHope:
        with unit_of_work(self.session):
            bag = self._lock(bag_id)
            self._transition(bag, "ready_to_ship")
            bag.packed_at = utcnow()
            if packed_by:
                bag.packed_by = packed_by
        return bag

    def ship_bag(self, bag_id: int, shipping_info: Optional[dict] = None) -> BagOfHope:
        """Move to in_transit, stamp shipped_at and record any tracking/recipient fields."""
        with unit_of_work(self.session):
            bag = self._lock(bag_id)
            patch = validate_payload(
                model=BagOfHope,
                payload=shipping_info or {},
                policy=SHIPPING_POLICY,
                partial=True,
            )
            self._transition(bag, "in_transit")
            bag.shipped_at = utcnow()
            for key, value in patch.items():
                if value is not None:
                    setattr(bag, key, value)
        return bag

    def mark_ready_for_pickup(self, bag_id: int) -> BagOfHope:
        return self.update_bag_status(bag_id, "ready_for_pickup")

    def mark_delivered(self, bag_id: int) -> BagOfHope:
        with unit_of_work(self.session):
            bag = self._lock(bag_id)
            self._transition(bag, "delivered")
            bag.delivered_at = utcnow()
        return bag

    def cancel_bag(self, bag_id: int) -> BagOfHope:
        return self.update_bag_status(bag_id, "cancelled")

    def reopen_bag(self, bag_id: int) -> BagOfHope:
        return self.update_bag_status(bag_id, "pending")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, bag_id: int) -> BagOfHope:
        bag = self.bags.get_for_update(bag_id)
        if bag is None:
            raise NotFoundError("Bag", bag_id)
        return bag

    def _transition(self, bag: BagOfHope, new_status: str) -> None:
        require_choice("status", new_status, BAG_STATUSES)
        if not can_transition(bag.status, new_status):
            logger.warning("Rejected bag %s transition %s -> %s", bag.id, bag.status, new_status)
            raise InvalidTransitionError("Bag", bag.status, new_status, entity_id=bag.id)
        if new_status != "cancelled":
            self._guard_batch_member(bag, new_status)

        previous = bag.status
        bag.status = new_status
        if new_status == "cancelled" and bag.batch_id is not None:
            logger.info("Bag %s detached from batch %s on cancel", bag.id, bag.batch_id)
            bag.batch_id = None
        self.session.flush()
        logger.info("Bag %s: %s -> %s", bag.id, previous, new_status)

    def _guard_batch_member(self, bag: BagOfHope, new_status: str) -> None:
        # Once its batch has closed, a member may only move ahead on the shipping path
        if bag.batch_id is None:
            return
        batch = self.batches.get(bag.batch_id)
        if batch is None or batch.status == "open":
            return
        if (
            bag.status in SHIPPING_PATH
            and new_status in SHIPPING_PATH
            and SHIPPING_PATH.index(new_status) > SHIPPING_PATH.index(bag.status)
        ):
            return
        logger.warning(
            "Rejected bag %s transition %s -> %s: batch %s is %s",
            bag.id, bag.status, new_status, batch.batch_number, batch.status,
        )
        raise InvalidTransitionError(
            "Bag", bag.status, new_status,
            entity_id=bag.id,
            detail=f"member of {batch.status} batch {batch.batch_number}",
        )
