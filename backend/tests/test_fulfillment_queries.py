# Overview: Pytest coverage for stage bucketing and queue counts.

import pytest

from bagsofhope.errors import ValidationError
from bagsofhope.services.bag_service import BAG_STATUSES
from bagsofhope.services.fulfillment_service import FULFILLMENT_STAGE_STATUSES, stage_for_status


class TestStageMapping:
    def test_stage_for_status(self):
        assert stage_for_status("pending") == "pick"
        assert stage_for_status("picking") == "pick"
        assert stage_for_status("packing") == "pack"
        assert stage_for_status("ready_for_pickup") == "ship"
        assert stage_for_status("delivered") == "ship"
        assert stage_for_status("cancelled") is None

    def test_stage_for_unknown_status(self):
        with pytest.raises(ValidationError):
            stage_for_status("lost")

    def test_stages_only_name_known_statuses(self):
        for statuses in FULFILLMENT_STAGE_STATUSES.values():
            assert set(statuses) <= set(BAG_STATUSES)


class TestCounts:
    def test_one_bag_per_status(self, queries, bag_with_status):
        for status in BAG_STATUSES:
            bag_with_status(status)

        assert queries.get_fulfillment_counts() == {"pick": 2, "pack": 1, "ship": 3}

    def test_empty_counts(self, queries):
        assert queries.get_fulfillment_counts() == {"pick": 0, "pack": 0, "ship": 0}

    def test_batch_counts_include_zero_statuses(self, queries, batch_manager):
        batch_manager.create_batch()
        batch_manager.create_batch()
        closed = batch_manager.create_batch()
        batch_manager.close_batch(closed.id)

        assert queries.get_batch_counts() == {
            "open": 2,
            "ready_to_ship": 1,
            "in_transit": 0,
            "ready_for_pickup": 0,
            "delivered": 0,
            "cancelled": 0,
        }


class TestBagQueues:
    def test_bags_by_stage(self, queries, bag_with_status):
        packing = bag_with_status("packing")
        bag_with_status("pending")
        bag_with_status("delivered")

        assert [b.id for b in queries.get_bags_by_stage("pack")] == [packing.id]
        assert len(queries.get_bags_by_stage("pick")) == 1
        assert len(queries.get_bags_by_stage("ship")) == 1

    def test_unknown_stage(self, queries):
        with pytest.raises(ValidationError):
            queries.get_bags_by_stage("deliver")

    def test_available_for_batch_filter(self, queries, batch_manager, ready_bag, bag_with_status):
        older = ready_bag()
        newer = ready_bag()
        bag_with_status("packing")

        assert [b.id for b in queries.get_available_bags_for_batch()] == [older.id, newer.id]

        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [older.id])

        assert [b.id for b in queries.get_available_bags_for_batch()] == [newer.id]

    def test_get_bags_filters(self, queries, bag_with_status):
        bag_with_status("pending")
        cancelled = bag_with_status("cancelled")

        assert [b.id for b in queries.get_bags("cancelled")] == [cancelled.id]
        assert len(queries.get_bags()) == 2
        with pytest.raises(ValidationError):
            queries.get_bags(["pending", "lost"])

    def test_pending_and_recent(self, queries, make_bag):
        first = make_bag()
        second = make_bag()
        third = make_bag()

        assert [b.id for b in queries.get_pending_bags()] == [first.id, second.id, third.id]
        assert [b.id for b in queries.get_recent_bags(limit=2)] == [third.id, second.id]
