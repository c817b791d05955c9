# Overview: Service-layer operations for the item category catalog.

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Iterable, Optional, Sequence, Union

from ..errors import NotFoundError
from ..models import Category
from ..models.inventory import AGE_GROUPS, GENDERS
from ..repositories import CategoryRepository
from ..validation import ModelValidationPolicy, enforce_rules_category, require_choice, validate_payload
from .concurrency import unit_of_work

logger = logging.getLogger(__name__)


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name",
        "age_group",
        "gender",
        "item_type",
        "standard_value_new_cents",
        "reorder_point",
        "display_order",
    }),
    required_on_create=frozenset({"name", "age_group", "gender", "item_type"}),
)

OneOrMany = Union[str, Sequence[str], None]


def _as_list(value: OneOrMany, field: str, choices) -> Optional[list[str]]:
    if value is None:
        return None
    values = [value] if isinstance(value, str) else list(value)
    for v in values:
        require_choice(field, v, choices)
    return values


def categories_for_child(categories: Iterable[Category], age_group: str, gender: str) -> list[Category]:
    """Categories that fit a child: same age group or neutral, same gender or neutral."""
    return [
        c for c in categories
        if c.age_group in (age_group, "neutral") and c.gender in (gender, "neutral")
    ]


def group_categories_by_type(categories: Iterable[Category]) -> dict[str, list[Category]]:
    """item_type -> categories, keeping first-seen order."""
    grouped: dict[str, list[Category]] = OrderedDict()
    for c in categories:
        grouped.setdefault(c.item_type, []).append(c)
    return grouped


class CategoryService:
    def __init__(self, session):
        self.session = session
        self.categories = CategoryRepository(session)

    def create_category(self, data: dict) -> Category:
        with unit_of_work(self.session):
            patch = validate_payload(model=Category, payload=data, policy=CATEGORY_POLICY, partial=False)
            enforce_rules_category(patch)
            category = self.categories.add(Category(is_active=True, **patch))
        logger.info("Created category %s (%s)", category.id, category.name)
        return category

    def update_category(self, category_id: int, updates: dict) -> Category:
        """
        Edit a category. A new standard value only affects future picks;
        existing ledger rows keep the value frozen when they were written.
        """
        with unit_of_work(self.session):
            category = self.get_category(category_id)
            patch = validate_payload(model=Category, payload=updates, policy=CATEGORY_POLICY, partial=True)
            enforce_rules_category(patch)
            for key, value in patch.items():
                setattr(category, key, value)
        return category

    def deactivate_category(self, category_id: int) -> Category:
        return self._set_active(category_id, False)

    def reactivate_category(self, category_id: int) -> Category:
        return self._set_active(category_id, True)

    def get_category(self, category_id: int) -> Category:
        category = self.categories.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    def list_categories(
        self,
        *,
        age_group: OneOrMany = None,
        gender: OneOrMany = None,
        item_type: Optional[str] = None,
        is_active: Optional[bool] = True,
    ) -> list[Category]:
        return self.categories.list(
            age_groups=_as_list(age_group, "age_group", AGE_GROUPS),
            genders=_as_list(gender, "gender", GENDERS),
            item_type=item_type,
            is_active=is_active,
        )

    def _set_active(self, category_id: int, active: bool) -> Category:
        with unit_of_work(self.session):
            category = self.get_category(category_id)
            category.is_active = active
        logger.info("Category %s %s", category_id, "reactivated" if active else "deactivated")
        return category
