from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class BagOfHope(db.Model):
    """
    One fulfillment request for a child.

    LIFECYCLE (see services/bag_service.py for the authoritative table):
        pending -> picking -> packing -> ready_to_ship -> in_transit
                -> ready_for_pickup -> delivered
    plus cancelled (re-openable to pending). Bags are never deleted.

    version_id is an optimistic-lock counter: two writers that read the same
    version cannot both commit a status change.
    """
    __tablename__ = "bags_of_hope"
    __table_args__ = (
        db.Index("ix_bags_status_created", "status", "created_at"),
        db.Index("ix_bags_batch_status", "batch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(64), nullable=True, index=True)

    # Child
    child_first_name = db.Column(db.String(120), nullable=True)
    child_last_name = db.Column(db.String(120), nullable=True)
    birthday = db.Column(db.Date, nullable=True)
    child_age = db.Column(db.Integer, nullable=True)
    child_age_group = db.Column(db.String(16), nullable=False)
    child_gender = db.Column(db.String(16), nullable=False)
    ethnicity = db.Column(db.String(32), nullable=True)

    # Pickup / delivery
    pickup_location = db.Column(db.String(64), nullable=True)
    recipient_name = db.Column(db.String(120), nullable=True)
    recipient_phone = db.Column(db.String(32), nullable=True)
    delivery_address = db.Column(db.String(255), nullable=True)
    delivery_notes = db.Column(db.Text, nullable=True)

    # Bag customization
    bag_embroidery_company = db.Column(db.String(120), nullable=True)
    bag_order_number = db.Column(db.String(64), nullable=True)
    bag_embroidery_color = db.Column(db.String(32), nullable=True)
    toiletry_bag_color = db.Column(db.String(32), nullable=True)
    toiletry_bag_labeled = db.Column(db.String(64), nullable=True)

    # Free-text needs
    toy_activity = db.Column(db.Text, nullable=True)
    tops = db.Column(db.Text, nullable=True)
    bottoms = db.Column(db.Text, nullable=True)
    pajamas = db.Column(db.Text, nullable=True)
    underwear = db.Column(db.Text, nullable=True)
    diaper_pullup = db.Column(db.Text, nullable=True)
    shoes = db.Column(db.Text, nullable=True)
    coat = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(32), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    # Milestones
    picked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    packed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    packed_by = db.Column(db.String(120), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tracking_number = db.Column(db.String(120), nullable=True)
    shipping_carrier = db.Column(db.String(120), nullable=True)

    batch_id = db.Column(db.Integer, db.ForeignKey("shipping_batches.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    batch = db.relationship("ShippingBatch", back_populates="bags")
    transactions = db.relationship(
        "InventoryTransaction",
        lazy="select",
        order_by="InventoryTransaction.id",
        viewonly=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<BagOfHope id={self.id} status={self.status} batch_id={self.batch_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "child_first_name": self.child_first_name,
            "child_last_name": self.child_last_name,
            "birthday": self.birthday.isoformat() if self.birthday else None,
            "child_age": self.child_age,
            "child_age_group": self.child_age_group,
            "child_gender": self.child_gender,
            "ethnicity": self.ethnicity,
            "pickup_location": self.pickup_location,
            "recipient_name": self.recipient_name,
            "recipient_phone": self.recipient_phone,
            "delivery_address": self.delivery_address,
            "delivery_notes": self.delivery_notes,
            "bag_embroidery_company": self.bag_embroidery_company,
            "bag_order_number": self.bag_order_number,
            "bag_embroidery_color": self.bag_embroidery_color,
            "toiletry_bag_color": self.toiletry_bag_color,
            "toiletry_bag_labeled": self.toiletry_bag_labeled,
            "toy_activity": self.toy_activity,
            "tops": self.tops,
            "bottoms": self.bottoms,
            "pajamas": self.pajamas,
            "underwear": self.underwear,
            "diaper_pullup": self.diaper_pullup,
            "shoes": self.shoes,
            "coat": self.coat,
            "status": self.status,
            "notes": self.notes,
            "picked_at": to_utc_z(self.picked_at),
            "packed_at": to_utc_z(self.packed_at),
            "packed_by": self.packed_by,
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "tracking_number": self.tracking_number,
            "shipping_carrier": self.shipping_carrier,
            "batch_id": self.batch_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ShippingBatch(db.Model):
    """
    A courier run grouping several bags.

    Membership lives on BagOfHope.batch_id; a bag belongs to at most one
    batch. Status changes cascade to every current member in the same DB
    transaction (services/batch_service.py).
    """
    __tablename__ = "shipping_batches"
    __table_args__ = (
        db.UniqueConstraint("batch_number", name="uq_shipping_batches_number"),
        db.Index("ix_shipping_batches_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "B-2026-0001"), printed on the batch QR label
    batch_number = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(32), nullable=False, default="open", index=True)
    courier_name = db.Column(db.String(120), nullable=True)
    tracking_number = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    scheduled_pickup_at = db.Column(db.DateTime(timezone=True), nullable=True)
    picked_up_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    bags = db.relationship(
        "BagOfHope",
        back_populates="batch",
        order_by="BagOfHope.created_at.desc()",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ShippingBatch id={self.id} number={self.batch_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "status": self.status,
            "courier_name": self.courier_name,
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "scheduled_pickup_at": to_utc_z(self.scheduled_pickup_at),
            "picked_up_at": to_utc_z(self.picked_up_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BatchSequence(db.Model):
    """
    Atomic counter behind batch numbers, one row per sequence key (year).
    """
    __tablename__ = "batch_sequences"
    __table_args__ = (
        db.UniqueConstraint("sequence_key", name="uq_batch_sequences_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sequence_key = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
