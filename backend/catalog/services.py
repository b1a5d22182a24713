from __future__ import annotations

import logging

from django.db import transaction

from core.errors import InvalidRequest, ItemInactive, ItemNotFound

from .models import Deal, ItemKind, ItemStatus, Route

logger = logging.getLogger(__name__)

ITEM_MODELS = {
    ItemKind.ROUTE: Route,
    ItemKind.DEAL: Deal,
}


def parse_item_kind(value) -> ItemKind:
    try:
        return ItemKind((value or ItemKind.ROUTE).strip().lower())
    except (AttributeError, ValueError):
        raise InvalidRequest("itemType must be 'route' or 'deal'.")


def get_item(kind: ItemKind, item_id, *, for_update: bool = False):
    """Load a route or deal, raising ItemNotFound when it does not exist."""
    model = ITEM_MODELS[kind]
    queryset = model.objects.select_for_update() if for_update else model.objects.all()
    try:
        return queryset.get(pk=int(item_id))
    except (model.DoesNotExist, TypeError, ValueError):
        raise ItemNotFound(f"{kind.label} not found.")


def get_active_item(kind: ItemKind, item_id, *, for_update: bool = False):
    item = get_item(kind, item_id, for_update=for_update)
    if not item.is_active():
        raise ItemInactive(f"{kind.label} is {item.status} and cannot be booked.")
    return item


def list_active_routes_by_date():
    return Route.objects.filter(status=ItemStatus.ACTIVE).order_by("date", "id")


def list_active_deals_by_date():
    return Deal.objects.filter(status=ItemStatus.ACTIVE).order_by("deal_date", "id")


def update_item_status(kind: ItemKind, item_id, status: str):
    """Soft-status change; items with bookings are never deleted."""
    if status not in ItemStatus.values:
        raise InvalidRequest(f"Unknown status '{status}'.")
    with transaction.atomic():
        item = get_item(kind, item_id, for_update=True)
        if item.status != status:
            item.status = status
            item.save(update_fields=["status", "updated_at"])
            logger.info(
                "catalog item status changed",
                extra={"kind": kind.value, "item_id": item.pk, "status": status},
            )
    return item
