from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


SUBMISSION_STATUSES = ("pending", "processing", "completed", "cancelled")


class Submission(db.Model):
    """
    Request captured by the public intake form.

    Staff convert a submission into a BagOfHope; bag_of_hope_id records the
    bag that was created from it.
    """
    __tablename__ = "submissions"
    __table_args__ = (
        db.Index("ix_submissions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    child_first_name = db.Column(db.String(120), nullable=False)
    child_last_name = db.Column(db.String(120), nullable=False)
    birthday = db.Column(db.Date, nullable=True)
    child_gender = db.Column(db.String(16), nullable=False)
    ethnicity = db.Column(db.String(32), nullable=True)
    pickup_location = db.Column(db.String(64), nullable=False)

    clothing_needs = db.Column(db.Text, nullable=True)
    toy_preferences = db.Column(db.Text, nullable=True)
    special_notes = db.Column(db.Text, nullable=True)

    caregiver_name = db.Column(db.String(120), nullable=True)
    caregiver_phone = db.Column(db.String(32), nullable=True)
    caregiver_email = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    processed_by = db.Column(db.String(120), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    bag_of_hope_id = db.Column(db.Integer, db.ForeignKey("bags_of_hope.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    bag = db.relationship("BagOfHope")

    def __repr__(self) -> str:
        return f"<Submission id={self.id} status={self.status} bag_of_hope_id={self.bag_of_hope_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "child_first_name": self.child_first_name,
            "child_last_name": self.child_last_name,
            "birthday": self.birthday.isoformat() if self.birthday else None,
            "child_gender": self.child_gender,
            "ethnicity": self.ethnicity,
            "pickup_location": self.pickup_location,
            "clothing_needs": self.clothing_needs,
            "toy_preferences": self.toy_preferences,
            "special_notes": self.special_notes,
            "caregiver_name": self.caregiver_name,
            "caregiver_phone": self.caregiver_phone,
            "caregiver_email": self.caregiver_email,
            "status": self.status,
            "processed_by": self.processed_by,
            "processed_at": to_utc_z(self.processed_at),
            "bag_of_hope_id": self.bag_of_hope_id,
            "created_at": to_utc_z(self.created_at),
        }
