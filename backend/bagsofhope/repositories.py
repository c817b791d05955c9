# Overview: Per-entity data access over an injected SQLAlchemy session.

"""
Repositories are the only place that builds queries. Services receive a
session at construction and hand it to these; nothing here reaches for a
process-wide session, so tests can pass any Session bound to any engine.

Repositories never commit. Transaction boundaries belong to the services
(services/concurrency.unit_of_work).
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from sqlalchemy import case, func, update

from .models import (
    BagOfHope,
    BatchSequence,
    Category,
    InventoryLevel,
    InventoryTransaction,
    ShippingBatch,
    Submission,
)
from .models.inventory import DEPLETING_TYPES
from .services.concurrency import lock_for_update


class BagRepository:
    def __init__(self, session):
        self.session = session

    def get(self, bag_id: int) -> Optional[BagOfHope]:
        return self.session.get(BagOfHope, bag_id)

    def get_for_update(self, bag_id: int) -> Optional[BagOfHope]:
        return lock_for_update(self.session.query(BagOfHope).filter_by(id=bag_id)).first()

    def get_many_for_update(self, bag_ids: Iterable[int]) -> list[BagOfHope]:
        ids = list(bag_ids)
        if not ids:
            return []
        q = self.session.query(BagOfHope).filter(BagOfHope.id.in_(ids)).order_by(BagOfHope.id)
        return lock_for_update(q).all()

    def add(self, bag: BagOfHope) -> BagOfHope:
        self.session.add(bag)
        self.session.flush()
        return bag

    def list(
        self,
        *,
        statuses: Optional[Sequence[str]] = None,
        batch_id: Optional[int] = None,
        unbatched: bool = False,
        oldest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[BagOfHope]:
        q = self.session.query(BagOfHope)
        if statuses is not None:
            q = q.filter(BagOfHope.status.in_(list(statuses)))
        if batch_id is not None:
            q = q.filter(BagOfHope.batch_id == batch_id)
        if unbatched:
            q = q.filter(BagOfHope.batch_id.is_(None))

        if oldest_first:
            q = q.order_by(BagOfHope.created_at.asc(), BagOfHope.id.asc())
        else:
            q = q.order_by(BagOfHope.created_at.desc(), BagOfHope.id.desc())

        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def members_of_batch(self, batch_id: int, *, lock: bool = False) -> list[BagOfHope]:
        q = self.session.query(BagOfHope).filter(BagOfHope.batch_id == batch_id).order_by(BagOfHope.id)
        if lock:
            q = lock_for_update(q)
        return q.all()

    def count_by_status(self, *, exclude: Sequence[str] = ()) -> dict[str, int]:
        q = self.session.query(BagOfHope.status, func.count(BagOfHope.id))
        if exclude:
            q = q.filter(BagOfHope.status.notin_(list(exclude)))
        return {status: int(n) for status, n in q.group_by(BagOfHope.status).all()}


class BatchRepository:
    def __init__(self, session):
        self.session = session

    def get(self, batch_id: int) -> Optional[ShippingBatch]:
        return self.session.get(ShippingBatch, batch_id)

    def get_for_update(self, batch_id: int) -> Optional[ShippingBatch]:
        return lock_for_update(self.session.query(ShippingBatch).filter_by(id=batch_id)).first()

    def get_by_number(self, batch_number: str) -> Optional[ShippingBatch]:
        return self.session.query(ShippingBatch).filter_by(batch_number=batch_number).first()

    def add(self, batch: ShippingBatch) -> ShippingBatch:
        self.session.add(batch)
        self.session.flush()
        return batch

    def delete(self, batch: ShippingBatch) -> None:
        self.session.delete(batch)
        self.session.flush()

    def list(self, *, statuses: Optional[Sequence[str]] = None) -> list[ShippingBatch]:
        q = self.session.query(ShippingBatch)
        if statuses is not None:
            q = q.filter(ShippingBatch.status.in_(list(statuses)))
        return q.order_by(ShippingBatch.created_at.desc(), ShippingBatch.id.desc()).all()

    def count_by_status(self) -> dict[str, int]:
        rows = (
            self.session.query(ShippingBatch.status, func.count(ShippingBatch.id))
            .group_by(ShippingBatch.status)
            .all()
        )
        return {status: int(n) for status, n in rows}

    def next_sequence_number(self, sequence_key: str) -> int:
        """
        Atomically allocate the next number for a sequence key.

        Increment-then-read under the row lock taken by the UPDATE; first use
        of a key inserts the row.
        """
        stmt = (
            update(BatchSequence)
            .where(BatchSequence.sequence_key == sequence_key)
            .values(next_number=BatchSequence.next_number + 1)
        )
        result = self.session.execute(stmt)
        if result.rowcount:
            current = (
                self.session.query(BatchSequence.next_number)
                .filter_by(sequence_key=sequence_key)
                .scalar()
            )
            return current - 1

        self.session.add(BatchSequence(sequence_key=sequence_key, next_number=2))
        self.session.flush()
        return 1


class CategoryRepository:
    def __init__(self, session):
        self.session = session

    def get(self, category_id: int) -> Optional[Category]:
        return self.session.get(Category, category_id)

    def get_many(self, category_ids: Iterable[int]) -> dict[int, Category]:
        ids = list(set(category_ids))
        if not ids:
            return {}
        rows = self.session.query(Category).filter(Category.id.in_(ids)).all()
        return {c.id: c for c in rows}

    def add(self, category: Category) -> Category:
        self.session.add(category)
        self.session.flush()
        return category

    def list(
        self,
        *,
        age_groups: Optional[Sequence[str]] = None,
        genders: Optional[Sequence[str]] = None,
        item_type: Optional[str] = None,
        is_active: Optional[bool] = True,
    ) -> list[Category]:
        q = self.session.query(Category)
        if is_active is not None:
            q = q.filter(Category.is_active == is_active)
        if age_groups:
            q = q.filter(Category.age_group.in_(list(age_groups)))
        if genders:
            q = q.filter(Category.gender.in_(list(genders)))
        if item_type:
            q = q.filter(Category.item_type == item_type)
        # NULL display_order sorts last
        return q.order_by(
            Category.display_order.is_(None),
            Category.display_order.asc(),
            Category.name.asc(),
        ).all()


class InventoryRepository:
    def __init__(self, session):
        self.session = session

    def add_transaction(self, tx: InventoryTransaction) -> InventoryTransaction:
        self.session.add(tx)
        self.session.flush()
        return tx

    def get_level(self, category_id: int) -> Optional[InventoryLevel]:
        return self.session.query(InventoryLevel).filter_by(category_id=category_id).first()

    def get_level_for_update(self, category_id: int) -> InventoryLevel:
        """Locked level row, created at zero on first touch."""
        level = lock_for_update(
            self.session.query(InventoryLevel).filter_by(category_id=category_id)
        ).first()
        if level is None:
            level = InventoryLevel(
                category_id=category_id,
                quantity_on_hand=0,
                quantity_new=0,
                quantity_used=0,
                total_value_cents=0,
            )
            self.session.add(level)
            self.session.flush()
        return level

    def list_levels(self) -> list[InventoryLevel]:
        return self.session.query(InventoryLevel).order_by(InventoryLevel.category_id).all()

    def list_transactions(
        self,
        *,
        category_id: Optional[int] = None,
        bag_id: Optional[int] = None,
        transaction_type: Optional[str] = None,
        limit: int = 200,
    ) -> list[InventoryTransaction]:
        q = self.session.query(InventoryTransaction)
        if category_id is not None:
            q = q.filter_by(category_id=category_id)
        if bag_id is not None:
            q = q.filter_by(bag_of_hope_id=bag_id)
        if transaction_type is not None:
            q = q.filter_by(transaction_type=transaction_type)
        q = q.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        return q.limit(limit).all()

    def category_ids_with_transactions(self) -> list[int]:
        rows = self.session.query(InventoryTransaction.category_id).distinct().all()
        return [r[0] for r in rows]

    def ledger_totals(self, category_id: int) -> dict:
        """
        Full-scan aggregate of one category's ledger, partitioned by condition.

        Signed quantity/value: depleting types count negative.
        """
        sign = case((InventoryTransaction.transaction_type.in_(list(DEPLETING_TYPES)), -1), else_=1)
        rows = (
            self.session.query(
                InventoryTransaction.condition,
                func.coalesce(func.sum(sign * InventoryTransaction.quantity), 0),
                func.coalesce(func.sum(sign * InventoryTransaction.total_value_cents), 0),
            )
            .filter(InventoryTransaction.category_id == category_id)
            .group_by(InventoryTransaction.condition)
            .all()
        )
        totals = {"new": 0, "used": 0, "value_cents": 0}
        for condition, qty, value in rows:
            totals["used" if condition == "used" else "new"] += int(qty or 0)
            totals["value_cents"] += int(value or 0)

        dates = (
            self.session.query(
                InventoryTransaction.transaction_type,
                func.max(InventoryTransaction.created_at),
            )
            .filter(
                InventoryTransaction.category_id == category_id,
                InventoryTransaction.transaction_type.in_(["intake", "pick"]),
            )
            .group_by(InventoryTransaction.transaction_type)
            .all()
        )
        last = dict(dates)
        totals["last_intake_date"] = last.get("intake")
        totals["last_pick_date"] = last.get("pick")
        return totals


class SubmissionRepository:
    def __init__(self, session):
        self.session = session

    def get(self, submission_id: int) -> Optional[Submission]:
        return self.session.get(Submission, submission_id)

    def get_for_update(self, submission_id: int) -> Optional[Submission]:
        return lock_for_update(self.session.query(Submission).filter_by(id=submission_id)).first()

    def add(self, submission: Submission) -> Submission:
        self.session.add(submission)
        self.session.flush()
        return submission

    def list(self, *, status: Optional[str] = None) -> list[Submission]:
        q = self.session.query(Submission)
        if status is not None:
            q = q.filter_by(status=status)
        return q.order_by(Submission.created_at.desc(), Submission.id.desc()).all()
