# Overview: Domain error taxonomy shared by every service.

"""
Error taxonomy for the fulfillment core.

All lifecycle and ledger errors propagate to the caller unchanged. None are
retried here; transient store failures surface as PersistenceError and the
caller decides whether to try again.
"""

from __future__ import annotations


class FulfillmentError(Exception):
    """Base class for every error raised by the fulfillment core."""


class NotFoundError(FulfillmentError, LookupError):
    """Referenced bag, batch, category or submission does not exist."""

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class ValidationError(FulfillmentError, ValueError):
    """400-level input problem (bad quantity, missing field, inactive category)."""


class InvalidTransitionError(FulfillmentError, ValueError):
    """
    Requested status change is not in the allowed-transition set.

    Carries enough context for the calling layer to build a readable message
    without parsing the string.
    """

    def __init__(
        self,
        entity_type: str,
        current_status: str,
        requested_status: str,
        *,
        entity_id=None,
        detail: str | None = None,
    ):
        self.entity_type = entity_type
        self.current_status = current_status
        self.requested_status = requested_status
        self.entity_id = entity_id

        label = entity_type if entity_id is None else f"{entity_type} {entity_id}"
        message = f"Cannot transition {label} from {current_status} to {requested_status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InsufficientInventoryError(FulfillmentError, ValueError):
    """A depleting transaction would drive on-hand below zero."""

    def __init__(self, category_id: int, condition: str, on_hand: int, requested: int):
        self.category_id = category_id
        self.condition = condition
        self.on_hand = on_hand
        self.requested = requested
        super().__init__(
            f"Insufficient {condition} inventory for category {category_id}. "
            f"On-hand: {on_hand}, requested: {requested}"
        )


class PersistenceError(FulfillmentError, RuntimeError):
    """Underlying store failure. Always propagated, never swallowed."""


class ConcurrentUpdateError(PersistenceError):
    """Row changed underneath us (optimistic version check failed)."""
