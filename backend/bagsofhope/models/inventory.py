from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


AGE_GROUPS = ("baby", "toddler", "school_age", "teen", "neutral")
GENDERS = ("boy", "girl", "neutral")
TRANSACTION_TYPES = ("intake", "pick", "adjustment", "thrift_out", "disposal")
SOURCE_TYPES = ("donation", "purchase", "transfer")
CONDITIONS = ("new", "used")

# Stored with a positive quantity, but remove stock from the category
DEPLETING_TYPES = frozenset({"pick", "thrift_out", "disposal"})

# Used items are valued at half of the new standard value
USED_VALUE_PERCENT = 50


def used_value_cents(new_value_cents: int) -> int:
    """50% of the new value, nearest cent (half-up)."""
    return (new_value_cents * USED_VALUE_PERCENT + 50) // 100


class Category(db.Model):
    """
    Item classification (age group x gender x item type) used for counting
    and valuation.

    Categories are never hard-deleted; is_active=False hides them from intake
    and picking while their ledger history stays intact.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.CheckConstraint("standard_value_new_cents >= 0", name="ck_categories_value_nonneg"),
        db.CheckConstraint("reorder_point >= 0", name="ck_categories_reorder_nonneg"),
        db.Index("ix_categories_active_order", "is_active", "display_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    age_group = db.Column(db.String(16), nullable=False, index=True)
    gender = db.Column(db.String(16), nullable=False, index=True)
    item_type = db.Column(db.String(64), nullable=False, index=True)

    standard_value_new_cents = db.Column(db.Integer, nullable=False, default=0)
    reorder_point = db.Column(db.Integer, nullable=False, default=0)
    display_order = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    level = db.relationship("InventoryLevel", back_populates="category", uselist=False)

    @property
    def standard_value_used_cents(self) -> int:
        return used_value_cents(self.standard_value_new_cents or 0)

    def standard_value_for(self, condition: str) -> int:
        if condition == "used":
            return self.standard_value_used_cents
        return self.standard_value_new_cents or 0

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r} {self.age_group}/{self.gender}/{self.item_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "age_group": self.age_group,
            "gender": self.gender,
            "item_type": self.item_type,
            "standard_value_new_cents": self.standard_value_new_cents,
            "standard_value_used_cents": self.standard_value_used_cents,
            "reorder_point": self.reorder_point,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only ledger row. Never updated or deleted once written.

    unit_value_cents is frozen when the row is written; later changes to the
    category's standard value do not touch historic rows.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_category_created", "category_id", "created_at"),
        db.Index("ix_invtx_category_type", "category_id", "transaction_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    source_type = db.Column(db.String(16), nullable=True)
    condition = db.Column(db.String(8), nullable=False, default="new")

    # Positive for every type except adjustment, which is signed
    quantity = db.Column(db.Integer, nullable=False)

    unit_value_cents = db.Column(db.Integer, nullable=False, default=0)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)

    bag_of_hope_id = db.Column(db.Integer, db.ForeignKey("bags_of_hope.id"), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)
    receipt_reference = db.Column(db.String(120), nullable=True)
    created_by = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    category = db.relationship("Category")

    @property
    def quantity_delta(self) -> int:
        """Signed effect on on-hand."""
        if self.transaction_type in DEPLETING_TYPES:
            return -self.quantity
        return self.quantity

    @property
    def value_delta_cents(self) -> int:
        if self.transaction_type in DEPLETING_TYPES:
            return -self.total_value_cents
        return self.total_value_cents

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} {self.transaction_type} "
            f"category_id={self.category_id} qty={self.quantity} {self.condition}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "transaction_type": self.transaction_type,
            "source_type": self.source_type,
            "condition": self.condition,
            "quantity": self.quantity,
            "quantity_delta": self.quantity_delta,
            "unit_value_cents": self.unit_value_cents,
            "total_value_cents": self.total_value_cents,
            "bag_of_hope_id": self.bag_of_hope_id,
            "notes": self.notes,
            "receipt_reference": self.receipt_reference,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryLevel(db.Model):
    """
    Cached per-category aggregate of the ledger.

    Maintained incrementally in the same DB transaction as every ledger
    insert; rebuildable from a full ledger scan.
    """
    __tablename__ = "inventory_levels"
    __table_args__ = (
        db.UniqueConstraint("category_id", name="uq_inventory_levels_category"),
        db.CheckConstraint(
            "quantity_on_hand = quantity_new + quantity_used",
            name="ck_inventory_levels_on_hand_split",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    quantity_new = db.Column(db.Integer, nullable=False, default=0)
    quantity_used = db.Column(db.Integer, nullable=False, default=0)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)

    last_intake_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_pick_date = db.Column(db.DateTime(timezone=True), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", back_populates="level")

    def quantity_for(self, condition: str) -> int:
        return self.quantity_used if condition == "used" else self.quantity_new

    def __repr__(self) -> str:
        return (
            f"<InventoryLevel category_id={self.category_id} on_hand={self.quantity_on_hand} "
            f"new={self.quantity_new} used={self.quantity_used}>"
        )

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "quantity_on_hand": self.quantity_on_hand,
            "quantity_new": self.quantity_new,
            "quantity_used": self.quantity_used,
            "total_value_cents": self.total_value_cents,
            "last_intake_date": to_utc_z(self.last_intake_date),
            "last_pick_date": to_utc_z(self.last_pick_date),
            "updated_at": to_utc_z(self.updated_at),
        }
