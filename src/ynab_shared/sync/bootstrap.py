"""Resolve each owner's category binding once, before any pass runs."""

import logging
from dataclasses import dataclass

from ..config import OwnerSettings
from ..db import Database
from ..exceptions import ConfigurationError, GatewayError
from ..models import CategoryBinding, YnabCategory
from .gateway import RateLimitedGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Owner:
    """An owner's settings together with their resolved category binding."""

    settings: OwnerSettings
    binding: CategoryBinding

    @property
    def name(self) -> str:
        return self.settings.name


def _find_category(categories: list[YnabCategory], name: str) -> YnabCategory | None:
    wanted = name.strip().lower()
    for category in categories:
        if category.deleted:
            continue
        if category.name.strip().lower() == wanted:
            return category
    return None


def resolve_binding(
    owner: OwnerSettings, categories: list[YnabCategory]
) -> CategoryBinding:
    """
    Build an owner's category binding.

    Explicit ids in the settings win; otherwise categories are matched by exact
    (case-insensitive) name.

    Raises:
        ConfigurationError: If a category cannot be resolved
    """
    by_id = {c.id: c for c in categories}

    shared = (
        by_id.get(owner.shared_category_id)
        if owner.shared_category_id
        else _find_category(categories, owner.shared_category_name)
    )
    balancing = (
        by_id.get(owner.balancing_category_id)
        if owner.balancing_category_id
        else _find_category(categories, owner.balancing_category_name)
    )

    if owner.shared_category_id and shared is None:
        # The id may be valid even if the category list does not carry it
        shared = YnabCategory(id=owner.shared_category_id, name=owner.shared_category_name)
    if owner.balancing_category_id and balancing is None:
        balancing = YnabCategory(
            id=owner.balancing_category_id, name=owner.balancing_category_name
        )

    if shared is None:
        raise ConfigurationError(
            f"{owner.name} - Shared category '{owner.shared_category_name}' not found"
        )
    if balancing is None:
        raise ConfigurationError(
            f"{owner.name} - Shared balancing category "
            f"'{owner.balancing_category_name}' not found"
        )
    if shared.id == balancing.id:
        raise ConfigurationError(
            f"{owner.name} - Shared and balancing categories must differ ({shared.id})"
        )

    return CategoryBinding(
        shared_category_group_id=shared.category_group_id,
        shared_category_id=shared.id,
        balancing_category_id=balancing.id,
    )


def load_or_resolve_binding(
    owner: OwnerSettings,
    gateway: RateLimitedGateway,
    database: Database,
    force_refresh: bool = False,
) -> Owner:
    """
    Get an owner's binding from the database, resolving it when needed.

    Resolution costs one API call and is persisted, so later runs skip it
    unless ``force_refresh`` is set.
    """
    binding = None if force_refresh else database.get_category_binding(owner.name)

    if binding is not None:
        logger.info(f"{owner.name} - Categories already initialized")
        return Owner(settings=owner, binding=binding)

    if force_refresh:
        logger.info(f"{owner.name} - Forced refresh of categories")

    try:
        categories = gateway.get_categories(owner.budget_id)
    except GatewayError as e:
        raise ConfigurationError(
            f"{owner.name} - Could not fetch categories to resolve binding: {e}"
        ) from e

    binding = resolve_binding(owner, categories)
    database.save_category_binding(owner.name, binding)
    logger.info(f"{owner.name} - Categories initialized: {binding.model_dump()}")

    return Owner(settings=owner, binding=binding)
