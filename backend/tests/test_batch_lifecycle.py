# Overview: Pytest coverage for shipping batches, membership guards, and status cascades.

import pytest

from bagsofhope.errors import InvalidTransitionError, NotFoundError, ValidationError
from bagsofhope.models import BagOfHope
from bagsofhope.services.batch_service import (
    BATCH_STATUS_TRANSITIONS,
    BATCH_STATUSES,
    BATCH_TO_BAG_STATUS,
    BatchLifecycleManager,
    format_batch_number,
)
from bagsofhope.time_utils import utcnow


class TestBatchTables:
    def test_every_status_has_a_row(self):
        assert set(BATCH_STATUS_TRANSITIONS) == set(BATCH_STATUSES)
        for targets in BATCH_STATUS_TRANSITIONS.values():
            assert targets <= set(BATCH_STATUSES)

    def test_every_status_maps_to_a_bag_status(self):
        assert set(BATCH_TO_BAG_STATUS) == set(BATCH_STATUSES)


class TestBatchNumbers:
    def test_sequential_within_year(self, batch_manager):
        year = utcnow().year
        first = batch_manager.create_batch()
        second = batch_manager.create_batch(courier_name="Metro Courier")

        assert first.batch_number == f"B-{year}-0001"
        assert second.batch_number == f"B-{year}-0002"
        assert first.status == "open"
        assert second.courier_name == "Metro Courier"

    def test_custom_prefix(self, db_session):
        manager = BatchLifecycleManager(db_session, batch_number_prefix="SHIP")
        batch = manager.create_batch()
        assert batch.batch_number.startswith("SHIP-")

    def test_format_widens_past_four_digits(self):
        assert format_batch_number("B", 2026, 7) == "B-2026-0007"
        assert format_batch_number("B", 2026, 12345) == "B-2026-12345"

    def test_scheduled_pickup_parsed(self, batch_manager):
        batch = batch_manager.create_batch(scheduled_pickup_at="2026-11-02T15:30:00Z")
        assert batch.scheduled_pickup_at.hour == 15

    def test_bad_scheduled_pickup(self, batch_manager):
        with pytest.raises(ValidationError):
            batch_manager.create_batch(scheduled_pickup_at="next tuesday")

    def test_lookup_by_number(self, batch_manager):
        batch = batch_manager.create_batch()
        assert batch_manager.get_batch_by_number(batch.batch_number).id == batch.id
        with pytest.raises(NotFoundError):
            batch_manager.get_batch_by_number("B-1999-0001")


class TestMembership:
    def test_add_ready_bags(self, batch_manager, ready_bag):
        a, b = ready_bag(), ready_bag()
        batch = batch_manager.create_batch()

        batch_manager.add_bags_to_batch(batch.id, [a.id, b.id])

        summary = batch_manager.get_batch_summary(batch.id)
        assert summary["bag_count"] == 2
        assert {bag["id"] for bag in summary["bags"]} == {a.id, b.id}

    def test_batch_must_be_open(self, batch_manager, ready_bag):
        first, second = ready_bag(), ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [first.id])
        batch_manager.close_batch(batch.id)

        with pytest.raises(InvalidTransitionError):
            batch_manager.add_bags_to_batch(batch.id, [second.id])

    def test_non_ready_bag_blocks_whole_add(self, db_session, batch_manager, ready_bag, make_bag):
        ready = ready_bag()
        pending = make_bag()
        batch = batch_manager.create_batch()

        with pytest.raises(ValidationError):
            batch_manager.add_bags_to_batch(batch.id, [ready.id, pending.id])

        assert db_session.get(BagOfHope, ready.id).batch_id is None
        assert db_session.get(BagOfHope, pending.id).batch_id is None

    def test_bag_in_another_batch(self, batch_manager, ready_bag):
        bag = ready_bag()
        first = batch_manager.create_batch()
        second = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(first.id, [bag.id])

        with pytest.raises(ValidationError):
            batch_manager.add_bags_to_batch(second.id, [bag.id])

    def test_unknown_bag_or_batch(self, batch_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        with pytest.raises(NotFoundError):
            batch_manager.add_bags_to_batch(batch.id, [bag.id, 99999])
        with pytest.raises(NotFoundError):
            batch_manager.add_bags_to_batch(99999, [bag.id])

    def test_remove_only_while_open(self, db_session, batch_manager, ready_bag):
        keep, drop = ready_bag(), ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [keep.id, drop.id])

        batch_manager.remove_bag_from_batch(drop.id)
        assert db_session.get(BagOfHope, drop.id).batch_id is None

        batch_manager.close_batch(batch.id)
        with pytest.raises(InvalidTransitionError):
            batch_manager.remove_bag_from_batch(keep.id)
        assert db_session.get(BagOfHope, keep.id).batch_id == batch.id

    def test_remove_unbatched_bag(self, batch_manager, ready_bag):
        bag = ready_bag()
        with pytest.raises(ValidationError):
            batch_manager.remove_bag_from_batch(bag.id)


class TestCascade:
    def test_in_transit_cascades_to_members_only(self, db_session, batch_manager, ready_bag):
        a, b, outsider = ready_bag(), ready_bag(), ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [a.id, b.id])
        batch_manager.close_batch(batch.id)

        batch = batch_manager.mark_batch_picked_up(batch.id, courier_name="Metro", tracking_number="TRK-1")

        assert batch.status == "in_transit"
        assert batch.picked_up_at is not None
        assert batch.courier_name == "Metro"
        assert batch.tracking_number == "TRK-1"
        for bag_id in (a.id, b.id):
            bag = db_session.get(BagOfHope, bag_id)
            assert bag.status == "in_transit"
            assert bag.shipped_at == batch.picked_up_at

        untouched = db_session.get(BagOfHope, outsider.id)
        assert untouched.status == "ready_to_ship"
        assert untouched.shipped_at is None

    def test_delivery_stamps_members(self, db_session, batch_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [bag.id])
        batch_manager.close_batch(batch.id)
        batch_manager.mark_batch_picked_up(batch.id)
        batch_manager.mark_batch_ready_for_pickup(batch.id)
        assert db_session.get(BagOfHope, bag.id).status == "ready_for_pickup"

        batch = batch_manager.mark_batch_delivered(batch.id)

        stored = db_session.get(BagOfHope, bag.id)
        assert stored.status == "delivered"
        assert stored.delivered_at == batch.delivered_at

    def test_disallowed_batch_transition(self, batch_manager):
        batch = batch_manager.create_batch()
        with pytest.raises(InvalidTransitionError):
            batch_manager.update_batch_status(batch.id, "in_transit")
        assert batch_manager.get_batch(batch.id).status == "open"

    def test_unknown_batch_status(self, batch_manager):
        batch = batch_manager.create_batch()
        with pytest.raises(ValidationError):
            batch_manager.update_batch_status(batch.id, "lost")

    def test_blocked_member_rolls_back_batch(self, db_session, batch_manager, bag_manager, ready_bag):
        early, normal = ready_bag(), ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [early.id, normal.id])
        batch_manager.close_batch(batch.id)
        batch_manager.mark_batch_picked_up(batch.id)

        # Delivered ahead of the rest of its batch
        bag_manager.mark_delivered(early.id)

        with pytest.raises(InvalidTransitionError):
            batch_manager.mark_batch_ready_for_pickup(batch.id)

        assert batch_manager.get_batch(batch.id).status == "in_transit"
        assert db_session.get(BagOfHope, normal.id).status == "in_transit"
        assert db_session.get(BagOfHope, early.id).status == "delivered"

    def test_status_gate_cancel_releases_member(self, db_session, batch_manager, bag_manager, ready_bag):
        dropped, kept = ready_bag(), ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [dropped.id, kept.id])
        batch_manager.close_batch(batch.id)

        bag = bag_manager.update_bag_status(dropped.id, "cancelled")
        assert bag.batch_id is None

        batch = batch_manager.mark_batch_picked_up(batch.id)

        assert batch.status == "in_transit"
        assert db_session.get(BagOfHope, kept.id).status == "in_transit"
        assert db_session.get(BagOfHope, dropped.id).status == "cancelled"
        assert batch_manager.get_batch_summary(batch.id)["bag_count"] == 1

    @pytest.mark.parametrize("batch_steps, back_to", [
        (["close_batch"], "packing"),
        (["close_batch", "mark_batch_picked_up"], "ready_to_ship"),
        (["close_batch", "mark_batch_picked_up", "mark_batch_ready_for_pickup"], "in_transit"),
    ])
    def test_member_cannot_move_back_once_batch_closed(
        self, db_session, batch_manager, bag_manager, ready_bag, batch_steps, back_to
    ):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [bag.id])
        for step in batch_steps:
            getattr(batch_manager, step)(batch.id)
        before = db_session.get(BagOfHope, bag.id).status

        with pytest.raises(InvalidTransitionError):
            bag_manager.update_bag_status(bag.id, back_to)

        assert db_session.get(BagOfHope, bag.id).status == before

    def test_backward_move_refused_so_batch_still_ships(self, db_session, batch_manager, bag_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [bag.id])
        batch_manager.close_batch(batch.id)

        with pytest.raises(InvalidTransitionError):
            bag_manager.update_bag_status(bag.id, "packing")

        batch_manager.mark_batch_picked_up(batch.id)
        assert db_session.get(BagOfHope, bag.id).status == "in_transit"

    def test_member_may_move_back_while_batch_open(self, db_session, batch_manager, bag_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [bag.id])

        bag_manager.update_bag_status(bag.id, "packing")
        batch_manager.close_batch(batch.id)

        stored = db_session.get(BagOfHope, bag.id)
        assert stored.status == "ready_to_ship"
        assert stored.batch_id == batch.id

    def test_cancel_releases_members(self, db_session, batch_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [bag.id])

        batch = batch_manager.cancel_batch(batch.id)

        assert batch.status == "cancelled"
        stored = db_session.get(BagOfHope, bag.id)
        assert stored.batch_id is None
        assert stored.status == "ready_to_ship"

    def test_cancelled_is_terminal(self, batch_manager):
        batch = batch_manager.create_batch()
        batch_manager.cancel_batch(batch.id)
        with pytest.raises(InvalidTransitionError):
            batch_manager.update_batch_status(batch.id, "open")


class TestDeleteBatch:
    def test_delete_open_batch_detaches_members(self, db_session, batch_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_id = batch.id
        batch_manager.add_bags_to_batch(batch_id, [bag.id])

        batch_manager.delete_batch(batch_id)

        with pytest.raises(NotFoundError):
            batch_manager.get_batch(batch_id)
        assert db_session.get(BagOfHope, bag.id).batch_id is None

    def test_delete_cancelled_batch(self, batch_manager):
        batch = batch_manager.create_batch()
        batch_id = batch.id
        batch_manager.cancel_batch(batch_id)

        batch_manager.delete_batch(batch_id)

        with pytest.raises(NotFoundError):
            batch_manager.get_batch(batch_id)

    def test_shipped_batch_cannot_be_deleted(self, batch_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [bag.id])
        batch_manager.close_batch(batch.id)

        with pytest.raises(InvalidTransitionError):
            batch_manager.delete_batch(batch.id)
        assert batch_manager.get_batch(batch.id).status == "ready_to_ship"


class TestListing:
    def test_list_by_status(self, batch_manager):
        open_batch = batch_manager.create_batch()
        closed = batch_manager.create_batch()
        batch_manager.close_batch(closed.id)

        assert [b.id for b in batch_manager.list_batches("open")] == [open_batch.id]
        assert {b.id for b in batch_manager.list_batches(["open", "ready_to_ship"])} == {open_batch.id, closed.id}
        assert len(batch_manager.list_batches()) == 2

        with pytest.raises(ValidationError):
            batch_manager.list_batches("shipped")
