# Overview: Converts public intake-form submissions into Bags of Hope.

"""
Submission processing.

A submission is input data, not part of the lifecycle: staff review it and
turn it into a BagOfHope. process_submission creates the bag and links it
back (bag_of_hope_id, status=completed, processed_at) in one transaction;
if either half fails, neither is written.

    pending/processing -> completed   (process_submission)
    pending/processing -> cancelled   (cancel_submission)
    completed, cancelled              (final)
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import InvalidTransitionError, NotFoundError
from ..models import BagOfHope, Submission
from ..models.inventory import GENDERS
from ..models.submissions import SUBMISSION_STATUSES
from ..repositories import SubmissionRepository
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, require_choice, validate_payload
from .bag_service import BagLifecycleManager
from .concurrency import unit_of_work

logger = logging.getLogger(__name__)


SUBMISSION_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "child_first_name",
        "child_last_name",
        "birthday",
        "child_gender",
        "ethnicity",
        "pickup_location",
        "clothing_needs",
        "toy_preferences",
        "special_notes",
        "caregiver_name",
        "caregiver_phone",
        "caregiver_email",
    }),
    required_on_create=frozenset({"child_first_name", "child_last_name", "child_gender", "pickup_location"}),
)

OPEN_SUBMISSION_STATUSES = frozenset({"pending", "processing"})


def bag_defaults_from_submission(submission: Submission) -> dict:
    """Fields a new bag inherits from its submission; staff input overrides these."""
    notes = "\n".join(
        part for part in (submission.clothing_needs, submission.special_notes) if part
    )
    return {
        "child_first_name": submission.child_first_name,
        "child_last_name": submission.child_last_name,
        "birthday": submission.birthday,
        "child_gender": submission.child_gender,
        "ethnicity": submission.ethnicity,
        "pickup_location": submission.pickup_location,
        "recipient_name": submission.caregiver_name,
        "recipient_phone": submission.caregiver_phone,
        "toy_activity": submission.toy_preferences,
        "notes": notes or None,
    }


class SubmissionService:
    def __init__(self, session, bag_manager: Optional[BagLifecycleManager] = None):
        self.session = session
        self.submissions = SubmissionRepository(session)
        self.bag_manager = bag_manager if bag_manager is not None else BagLifecycleManager(session)

    def create_submission(self, data: dict) -> Submission:
        with unit_of_work(self.session):
            patch = validate_payload(model=Submission, payload=data, policy=SUBMISSION_POLICY, partial=False)
            require_choice("child_gender", patch["child_gender"], GENDERS)
            submission = self.submissions.add(Submission(status="pending", **patch))
        logger.info("Received submission %s", submission.id)
        return submission

    def get_submission(self, submission_id: int) -> Submission:
        submission = self.submissions.get(submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        return submission

    def list_submissions(self, status: Optional[str] = None) -> list[Submission]:
        if status is not None:
            require_choice("status", status, SUBMISSION_STATUSES)
        return self.submissions.list(status=status)

    def process_submission(
        self,
        submission_id: int,
        bag_data: Optional[dict] = None,
        processed_by: Optional[str] = None,
    ) -> BagOfHope:
        """
        Create a pending bag from a submission and link the two.

        bag_data must at least supply child_age_group (submissions do not
        carry one); any field it names overrides the submission's value.

        Raises:
            InvalidTransitionError: submission already completed or cancelled
            ValidationError: bag data fails validation (nothing is written)
        """
        with unit_of_work(self.session):
            submission = self._lock(submission_id)
            if submission.status not in OPEN_SUBMISSION_STATUSES:
                raise InvalidTransitionError(
                    "Submission", submission.status, "completed", entity_id=submission.id
                )

            data = {k: v for k, v in bag_defaults_from_submission(submission).items() if v is not None}
            data.update(bag_data or {})
            bag = self.bag_manager.create_bag_of_hope(data, commit=False)

            submission.bag_of_hope_id = bag.id
            submission.status = "completed"
            submission.processed_at = utcnow()
            submission.processed_by = processed_by

        logger.info("Submission %s processed into bag %s", submission_id, bag.id)
        return bag

    def cancel_submission(self, submission_id: int) -> Submission:
        with unit_of_work(self.session):
            submission = self._lock(submission_id)
            if submission.status not in OPEN_SUBMISSION_STATUSES:
                raise InvalidTransitionError(
                    "Submission", submission.status, "cancelled", entity_id=submission.id
                )
            submission.status = "cancelled"
        return submission

    def _lock(self, submission_id: int) -> Submission:
        submission = self.submissions.get_for_update(submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        return submission
