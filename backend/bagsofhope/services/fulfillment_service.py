# Overview: Read-only queue and dashboard aggregation over bag and batch statuses.

from __future__ import annotations

from typing import Optional

from ..errors import ValidationError
from ..models import BagOfHope
from ..repositories import BagRepository, BatchRepository
from ..validation import require_choice
from .bag_service import BAG_STATUSES
from .batch_service import BATCH_STATUSES


FULFILLMENT_STAGES = ("pick", "pack", "ship")

FULFILLMENT_STAGE_STATUSES: dict[str, tuple[str, ...]] = {
    "pick": ("pending", "picking"),
    "pack": ("packing",),
    "ship": ("ready_to_ship", "in_transit", "ready_for_pickup", "delivered"),
}

# Left out of the live queue counts
CLOSED_BAG_STATUSES = ("cancelled", "delivered")

_STAGE_BY_STATUS = {
    status: stage
    for stage, statuses in FULFILLMENT_STAGE_STATUSES.items()
    for status in statuses
}


def stage_for_status(status: str) -> Optional[str]:
    """Queue stage for a bag status; None for cancelled."""
    require_choice("status", status, BAG_STATUSES)
    return _STAGE_BY_STATUS.get(status)


class FulfillmentQueries:
    """
    Stage buckets and counts for the fulfillment queues.

    Holds no state of its own; every answer is derived from current rows.
    """

    def __init__(self, session):
        self.session = session
        self.bags = BagRepository(session)
        self.batches = BatchRepository(session)

    def get_bags(self, statuses=None) -> list[BagOfHope]:
        if statuses is None:
            return self.bags.list()
        statuses = [statuses] if isinstance(statuses, str) else list(statuses)
        for s in statuses:
            require_choice("status", s, BAG_STATUSES)
        return self.bags.list(statuses=statuses)

    def get_bags_by_stage(self, stage: str) -> list[BagOfHope]:
        if stage not in FULFILLMENT_STAGE_STATUSES:
            raise ValidationError(f"Invalid stage '{stage}'. Must be one of: {', '.join(FULFILLMENT_STAGES)}")
        return self.bags.list(statuses=FULFILLMENT_STAGE_STATUSES[stage])

    def get_fulfillment_counts(self) -> dict[str, int]:
        """
        Open bags per stage, from a single GROUP BY status.

        Cancelled and delivered bags are excluded, so the ship bucket counts
        ready_to_ship, in_transit and ready_for_pickup.
        """
        counts = {stage: 0 for stage in FULFILLMENT_STAGES}
        for status, n in self.bags.count_by_status(exclude=CLOSED_BAG_STATUSES).items():
            stage = _STAGE_BY_STATUS.get(status)
            if stage is not None:
                counts[stage] += n
        return counts

    def get_batch_counts(self) -> dict[str, int]:
        counts = {status: 0 for status in BATCH_STATUSES}
        for status, n in self.batches.count_by_status().items():
            if status in counts:
                counts[status] = n
        return counts

    def get_available_bags_for_batch(self) -> list[BagOfHope]:
        """ready_to_ship bags not yet in a batch, oldest first."""
        return self.bags.list(statuses=["ready_to_ship"], unbatched=True, oldest_first=True)

    def get_pending_bags(self) -> list[BagOfHope]:
        return self.bags.list(statuses=["pending"], oldest_first=True)

    def get_recent_bags(self, limit: int = 10) -> list[BagOfHope]:
        if limit <= 0:
            raise ValidationError("limit must be positive")
        return self.bags.list(limit=limit)
