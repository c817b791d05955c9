# Overview: Pytest coverage for the Flask CLI command groups.

import pytest

from bagsofhope.models import BagOfHope, InventoryLevel


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestInventoryCommands:
    def test_verify_clean(self, runner, make_category, stock):
        stock(make_category(), 3)

        result = runner.invoke(args=["inventory", "verify"])

        assert result.exit_code == 0
        assert "match the ledger" in result.output

    def test_verify_drift_then_rebuild(self, db_session, runner, make_category, stock):
        cat = make_category()
        stock(cat, 3)
        level = db_session.query(InventoryLevel).filter_by(category_id=cat.id).one()
        level.quantity_used += 2
        level.quantity_on_hand += 2
        db_session.commit()

        result = runner.invoke(args=["inventory", "verify"])
        assert result.exit_code == 1
        assert f"category {cat.id}" in result.output

        result = runner.invoke(args=["inventory", "rebuild-levels", "--category-id", str(cat.id)])
        assert result.exit_code == 0
        assert "on_hand=3" in result.output

        assert runner.invoke(args=["inventory", "verify"]).exit_code == 0

    def test_reorder_alerts(self, runner, make_category):
        make_category(name="Winter Coats", reorder_point=4)

        result = runner.invoke(args=["inventory", "reorder-alerts"])

        assert result.exit_code == 0
        assert "Winter Coats" in result.output
        assert "out_of_stock" in result.output


class TestFulfillmentCommands:
    def test_counts(self, runner, bag_with_status):
        bag_with_status("packing")

        result = runner.invoke(args=["fulfillment", "counts"])

        assert result.exit_code == 0
        assert "pack" in result.output
        assert "open" in result.output

    def test_available_bags(self, runner, ready_bag):
        bag = ready_bag()

        result = runner.invoke(args=["fulfillment", "available-bags"])

        assert result.exit_code == 0
        assert str(bag.id) in result.output


class TestBatchCommands:
    def test_list_and_advance(self, db_session, runner, batch_manager, ready_bag):
        bag = ready_bag()
        batch = batch_manager.create_batch()
        batch_manager.add_bags_to_batch(batch.id, [bag.id])
        number = batch.batch_number

        result = runner.invoke(args=["batches", "list", "--status", "open"])
        assert result.exit_code == 0
        assert number in result.output

        result = runner.invoke(args=["batches", "advance", number, "ready_to_ship"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(args=["batches", "advance", number, "in_transit", "--courier", "Metro"])
        assert result.exit_code == 0, result.output
        assert "in_transit" in result.output
        assert db_session.get(BagOfHope, bag.id).status == "in_transit"

    def test_advance_rejects_bad_transition(self, runner, batch_manager):
        batch = batch_manager.create_batch()

        result = runner.invoke(args=["batches", "advance", batch.batch_number, "delivered"])

        assert result.exit_code != 0
        assert "Cannot transition" in result.output

    def test_advance_unknown_batch(self, runner):
        result = runner.invoke(args=["batches", "advance", "B-1999-0001", "ready_to_ship"])
        assert result.exit_code != 0
