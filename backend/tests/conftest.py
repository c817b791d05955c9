"""
Pytest fixtures for Bags of Hope backend tests.

Provides an in-memory database, a per-test table wipe, service fixtures, and
small factories for categories, stock and bags.
"""

import pytest

from bagsofhope import create_app
from bagsofhope.extensions import db
from bagsofhope.models import BagOfHope, Category
from bagsofhope.services.bag_service import BagLifecycleManager
from bagsofhope.services.batch_service import BatchLifecycleManager
from bagsofhope.services.category_service import CategoryService
from bagsofhope.services.fulfillment_service import FulfillmentQueries
from bagsofhope.services.inventory_service import InventoryLedger
from bagsofhope.services.submission_service import SubmissionService


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def ledger(db_session):
    return InventoryLedger(db_session)


@pytest.fixture
def bag_manager(db_session, ledger):
    return BagLifecycleManager(db_session, ledger=ledger)


@pytest.fixture
def batch_manager(db_session):
    return BatchLifecycleManager(db_session)


@pytest.fixture
def queries(db_session):
    return FulfillmentQueries(db_session)


@pytest.fixture
def category_service(db_session):
    return CategoryService(db_session)


@pytest.fixture
def submission_service(db_session, bag_manager):
    return SubmissionService(db_session, bag_manager=bag_manager)


@pytest.fixture
def make_category(db_session):
    """Factory: committed Category with sensible defaults."""
    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        fields = {
            'name': f"Category {counter['n']}",
            'age_group': 'school_age',
            'gender': 'neutral',
            'item_type': 'tops',
            'standard_value_new_cents': 1000,
            'reorder_point': 0,
            'is_active': True,
        }
        fields.update(overrides)
        category = Category(**fields)
        db_session.add(category)
        db_session.commit()
        return category

    return _make


@pytest.fixture
def stock(ledger):
    """Factory: intake quantity of a category in the given condition."""
    def _stock(category, quantity, condition='new'):
        return ledger.record_intake(category.id, quantity, condition=condition)

    return _stock


@pytest.fixture
def make_bag(bag_manager):
    """Factory: pending bag created through the lifecycle manager."""
    def _make(**overrides):
        data = {
            'child_first_name': 'Ava',
            'child_last_name': 'Lopez',
            'child_age_group': 'school_age',
            'child_gender': 'girl',
            'pickup_location': 'North Office',
        }
        data.update(overrides)
        return bag_manager.create_bag_of_hope(data)

    return _make


@pytest.fixture
def ready_bag(make_bag, bag_manager):
    """Factory: bag walked through pick and pack to ready_to_ship."""
    def _make(**overrides):
        bag = make_bag(**overrides)
        bag_manager.complete_pick(bag.id, [])
        return bag_manager.complete_packing(bag.id)

    return _make


@pytest.fixture
def bag_with_status(db_session):
    """Factory: bag inserted directly in an arbitrary status."""
    def _make(status, **overrides):
        fields = {
            'child_age_group': 'teen',
            'child_gender': 'boy',
            'status': status,
        }
        fields.update(overrides)
        bag = BagOfHope(**fields)
        db_session.add(bag)
        db_session.commit()
        return bag

    return _make
