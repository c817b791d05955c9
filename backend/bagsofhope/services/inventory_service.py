# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

"""
Inventory Ledger Invariants (authoritative)

Ledger:
- InventoryTransaction rows are append-only; no code path updates or deletes one.
- intake adds stock; pick, thrift_out and disposal carry a positive quantity
  that removes stock; adjustment carries a signed, non-zero quantity.
- total_value_cents = quantity * unit_value_cents, frozen when written.

Level cache:
- InventoryLevel holds quantity_on_hand, quantity_new, quantity_used and
  total_value_cents per category.
- quantity_on_hand = quantity_new + quantity_used (CHECK constraint), and each
  equals the signed sum of that category's ledger partitioned by condition.
- Strategy: incremental. Every insert locks the category's level row and
  applies the delta in the same DB transaction as the ledger row, so a
  read-after-write on the same category always sees it. rebuild_level()
  recomputes from a full scan and verify_levels() reports drift.

Business rules:
- On-hand for a condition may not go negative unless ALLOW_NEGATIVE_ON_HAND
  (back-order tracking) is enabled.
- Picks are valued at the category's standard value for the condition at the
  time of the pick (used = 50% of new).
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import InsufficientInventoryError, NotFoundError, ValidationError
from ..models import Category, InventoryLevel, InventoryTransaction
from ..models.inventory import CONDITIONS, SOURCE_TYPES, TRANSACTION_TYPES
from ..repositories import BagRepository, CategoryRepository, InventoryRepository
from ..time_utils import utcnow
from ..validation import require_choice
from .concurrency import unit_of_work

logger = logging.getLogger(__name__)

# Deficit at or above this is "very low" rather than "low"
VERY_LOW_DEFICIT = 10

# Types that may not touch an inactive category
ACTIVE_CATEGORY_TYPES = frozenset({"intake", "pick"})


class InventoryLedger:
    """Append-only ledger plus the per-category level cache it maintains."""

    def __init__(self, session, *, allow_negative_on_hand: bool = False):
        self.session = session
        self.allow_negative_on_hand = allow_negative_on_hand
        self.categories = CategoryRepository(session)
        self.inventory = InventoryRepository(session)
        self.bags = BagRepository(session)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_transaction(
        self,
        category_id: int,
        transaction_type: str,
        quantity: int,
        *,
        condition: str = "new",
        source_type: Optional[str] = None,
        bag_id: Optional[int] = None,
        unit_value_cents: Optional[int] = None,
        notes: Optional[str] = None,
        receipt_reference: Optional[str] = None,
        created_by: Optional[str] = None,
        commit: bool = True,
    ) -> InventoryTransaction:
        """
        Append one ledger row and apply it to the category's level.

        commit=False lets a caller fold this into a larger unit of work
        (BagLifecycleManager.complete_pick).

        Raises:
            ValidationError: malformed input or inactive category
            NotFoundError: unknown category or bag
            InsufficientInventoryError: would drive on-hand below zero
        """
        with unit_of_work(self.session, commit=commit):
            require_choice("transaction_type", transaction_type, TRANSACTION_TYPES)
            require_choice("condition", condition, CONDITIONS)
            self._validate_quantity(transaction_type, quantity)

            if transaction_type == "intake":
                source_type = source_type or "donation"
                require_choice("source_type", source_type, SOURCE_TYPES)
            elif source_type is not None:
                raise ValidationError("source_type is only recorded for intake transactions")

            if transaction_type == "pick":
                if bag_id is None:
                    raise ValidationError("pick transactions must reference a bag")
                if self.bags.get(bag_id) is None:
                    raise NotFoundError("Bag", bag_id)
            elif bag_id is not None:
                raise ValidationError("only pick transactions may reference a bag")

            category = self._require_category(category_id)
            if transaction_type in ACTIVE_CATEGORY_TYPES and not category.is_active:
                raise ValidationError(f"Category {category_id} is inactive")

            if unit_value_cents is None:
                unit_value_cents = category.standard_value_for(condition)
            if not isinstance(unit_value_cents, int) or isinstance(unit_value_cents, bool) or unit_value_cents < 0:
                raise ValidationError("unit_value_cents must be a non-negative integer")

            level = self.inventory.get_level_for_update(category_id)

            tx = InventoryTransaction(
                category_id=category_id,
                transaction_type=transaction_type,
                source_type=source_type,
                condition=condition,
                quantity=quantity,
                unit_value_cents=unit_value_cents,
                total_value_cents=quantity * unit_value_cents,
                bag_of_hope_id=bag_id,
                notes=notes,
                receipt_reference=receipt_reference,
                created_by=created_by,
                created_at=utcnow(),
            )

            available = level.quantity_for(condition)
            if tx.quantity_delta < 0 and available + tx.quantity_delta < 0 and not self.allow_negative_on_hand:
                logger.warning(
                    "Rejected %s of %s %s from category %s: only %s on hand",
                    transaction_type, quantity, condition, category_id, available,
                )
                raise InsufficientInventoryError(category_id, condition, available, -tx.quantity_delta)

            self.inventory.add_transaction(tx)
            self._apply_to_level(level, tx)
            self.session.flush()

        logger.info(
            "Recorded %s: category=%s qty=%s %s unit=%s bag=%s",
            transaction_type, category_id, quantity, condition, unit_value_cents, bag_id,
        )
        return tx

    def record_pick(
        self,
        category_id: int,
        bag_id: int,
        quantity: int,
        condition: str = "new",
        *,
        created_by: Optional[str] = None,
        commit: bool = True,
    ) -> InventoryTransaction:
        """
        Record items pulled from stock for a bag.

        The unit value is read from the category now and frozen on the row;
        a later change to standard_value_new_cents leaves it untouched.
        """
        require_choice("condition", condition, CONDITIONS)
        category = self._require_category(category_id)
        return self.record_transaction(
            category_id,
            "pick",
            quantity,
            condition=condition,
            bag_id=bag_id,
            unit_value_cents=category.standard_value_for(condition),
            created_by=created_by,
            commit=commit,
        )

    def record_intake(
        self,
        category_id: int,
        quantity: int,
        *,
        source_type: str = "donation",
        condition: str = "new",
        unit_value_cents: Optional[int] = None,
        notes: Optional[str] = None,
        receipt_reference: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> InventoryTransaction:
        """Intake form entry point. receipt_reference only makes sense for purchases."""
        if receipt_reference and source_type != "purchase":
            raise ValidationError("receipt_reference is only recorded for purchases")
        return self.record_transaction(
            category_id,
            "intake",
            quantity,
            condition=condition,
            source_type=source_type,
            unit_value_cents=unit_value_cents,
            notes=notes,
            receipt_reference=receipt_reference,
            created_by=created_by,
        )

    def rebuild_level(self, category_id: int, *, commit: bool = True) -> InventoryLevel:
        """Recompute a category's level from a full scan of its ledger."""
        with unit_of_work(self.session, commit=commit):
            self._require_category(category_id)
            level = self.inventory.get_level_for_update(category_id)
            totals = self.inventory.ledger_totals(category_id)

            level.quantity_new = totals["new"]
            level.quantity_used = totals["used"]
            level.quantity_on_hand = totals["new"] + totals["used"]
            level.total_value_cents = totals["value_cents"]
            level.last_intake_date = totals["last_intake_date"]
            level.last_pick_date = totals["last_pick_date"]
            self.session.flush()

        logger.info("Rebuilt inventory level for category %s: on_hand=%s", category_id, level.quantity_on_hand)
        return level

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_level(self, category_id: int) -> InventoryLevel:
        """Current level; a category with no ledger rows reads as all zeros."""
        self._require_category(category_id)
        level = self.inventory.get_level(category_id)
        if level is None:
            return InventoryLevel(
                category_id=category_id,
                quantity_on_hand=0,
                quantity_new=0,
                quantity_used=0,
                total_value_cents=0,
            )
        return level

    def get_quantity_on_hand(self, category_id: int, condition: Optional[str] = None) -> int:
        level = self.get_level(category_id)
        if condition is None:
            return level.quantity_on_hand
        require_choice("condition", condition, CONDITIONS)
        return level.quantity_for(condition)

    def list_transactions(
        self,
        *,
        category_id: Optional[int] = None,
        bag_id: Optional[int] = None,
        transaction_type: Optional[str] = None,
        limit: int = 200,
    ) -> list[InventoryTransaction]:
        if transaction_type is not None:
            require_choice("transaction_type", transaction_type, TRANSACTION_TYPES)
        return self.inventory.list_transactions(
            category_id=category_id,
            bag_id=bag_id,
            transaction_type=transaction_type,
            limit=limit,
        )

    def verify_levels(self) -> list[dict]:
        """
        Compare every cached level with a full ledger scan.

        Returns one entry per drifting category; empty means consistent.
        """
        category_ids = set(self.inventory.category_ids_with_transactions())
        category_ids.update(level.category_id for level in self.inventory.list_levels())

        mismatches = []
        for category_id in sorted(category_ids):
            totals = self.inventory.ledger_totals(category_id)
            level = self.inventory.get_level(category_id)
            cached = {
                "new": level.quantity_new if level else 0,
                "used": level.quantity_used if level else 0,
                "value_cents": level.total_value_cents if level else 0,
            }
            expected = {k: totals[k] for k in ("new", "used", "value_cents")}
            if cached != expected:
                mismatches.append({"category_id": category_id, "cached": cached, "ledger": expected})

        if mismatches:
            logger.warning("Inventory level drift in %s categories", len(mismatches))
        return mismatches

    def get_inventory_totals(self) -> dict:
        levels = self.inventory.list_levels()
        return {
            "quantity_on_hand": sum(level.quantity_on_hand for level in levels),
            "quantity_new": sum(level.quantity_new for level in levels),
            "quantity_used": sum(level.quantity_used for level in levels),
            "total_value_cents": sum(level.total_value_cents for level in levels),
        }

    def get_reorder_alerts(self) -> list[dict]:
        """
        Active categories below their reorder point.

        Severity: out_of_stock (on-hand <= 0), very_low (deficit >= 10), low.
        Sorted out-of-stock first, then by deficit descending.
        """
        alerts = []
        for category in self.categories.list(is_active=True):
            level = category.level
            on_hand = level.quantity_on_hand if level else 0
            if on_hand >= category.reorder_point:
                continue

            deficit = category.reorder_point - on_hand
            if on_hand <= 0:
                severity = "out_of_stock"
            elif deficit >= VERY_LOW_DEFICIT:
                severity = "very_low"
            else:
                severity = "low"

            alerts.append({
                "category_id": category.id,
                "category_name": category.name,
                "quantity_on_hand": on_hand,
                "reorder_point": category.reorder_point,
                "deficit": deficit,
                "severity": severity,
            })

        alerts.sort(key=lambda a: (a["severity"] != "out_of_stock", -a["deficit"], a["category_id"]))
        return alerts

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_category(self, category_id: int) -> Category:
        category = self.categories.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    @staticmethod
    def _validate_quantity(transaction_type: str, quantity) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise ValidationError("quantity must be an integer")
        if transaction_type == "adjustment":
            if quantity == 0:
                raise ValidationError("quantity must be non-zero for adjustment")
        elif quantity <= 0:
            raise ValidationError(f"quantity must be > 0 for {transaction_type}")

    @staticmethod
    def _apply_to_level(level: InventoryLevel, tx: InventoryTransaction) -> None:
        delta = tx.quantity_delta
        if tx.condition == "used":
            level.quantity_used += delta
        else:
            level.quantity_new += delta
        level.quantity_on_hand += delta
        level.total_value_cents += tx.value_delta_cents

        if tx.transaction_type == "intake":
            level.last_intake_date = tx.created_at
        elif tx.transaction_type == "pick":
            level.last_pick_date = tx.created_at
