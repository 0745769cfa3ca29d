"""
mobile.py - Change exchange with the companion mobile app.

The mobile app names its tables differently and uses snake_case rows.
Uploads are converted into collection records and applied by id;
downloads list every local record changed after a given time.
"""

import logging
import time
from typing import Any, Callable

from shop_sync.store.collections import remove_record, upsert_record
from shop_sync.store.local_store import LocalStore
from shop_sync.utils.clock import parse_iso

logger = logging.getLogger(__name__)

# Mobile table name -> local collection key
MOBILE_TABLES: dict[str, str] = {
    "jewelry": "jewelry_items",
    "gold": "gold_items",
    "stones": "stones_items",
    "craftsmen": "craftsmen",
    "staff": "staff_employees",
    "customers": "customers",
    "sales": "pos_recentInvoices",
}

COLLECTION_TO_MOBILE: dict[str, str] = {v: k for k, v in MOBILE_TABLES.items()}


def _jewelry(d: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": d.get("id"),
        "name": d.get("name"),
        "type": d.get("type"),
        "price": d.get("price"),
        "inStock": d.get("in_stock") or 0,
        "gemstone": d.get("gemstone") or "",
        "carat": d.get("carat") or 0,
        "metal": d.get("metal") or "",
        "description": d.get("description") or "",
        "image": d.get("image_url") or "💍",
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


def _gold(d: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": d.get("id"),
        "name": d.get("name"),
        "purity": d.get("purity"),
        "weight": d.get("weight"),
        "pricePerGram": d.get("price_per_gram"),
        "totalPrice": d.get("total_price"),
        "inStock": d.get("in_stock") or 0,
        "supplier": d.get("supplier") or "",
        "description": d.get("description") or "",
        "image": d.get("image_url") or "🥇",
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


def _craftsman(d: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": d.get("id"),
        "name": d.get("name"),
        "specialization": d.get("specialization"),
        "experienceYears": d.get("experience_years"),
        "phone": d.get("phone"),
        "email": d.get("email"),
        "hourlyRate": d.get("hourly_rate"),
        "address": d.get("address"),
        "skills": d.get("skills"),
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


def _staff(d: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": d.get("id"),
        "name": d.get("name"),
        "role": d.get("role"),
        "department": d.get("department"),
        "phone": d.get("phone"),
        "email": d.get("email"),
        "salary": d.get("salary"),
        "address": d.get("address"),
        "emergencyContact": d.get("emergency_contact"),
        "emergencyPhone": d.get("emergency_phone"),
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


def _customer(d: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": d.get("id"),
        "name": d.get("name"),
        "email": d.get("email"),
        "phone": d.get("phone"),
        "address": d.get("address"),
        "creditLimit": d.get("credit_limit") or 0,
        "currentBalance": d.get("current_balance") or 0,
        "totalPurchases": d.get("total_purchases") or 0,
        "lastPurchaseDate": d.get("last_purchase_date"),
        "status": d.get("status") or "active",
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


# Tables without a converter keep the mobile shape
_CONVERTERS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "jewelry": _jewelry,
    "gold": _gold,
    "craftsmen": _craftsman,
    "staff": _staff,
    "customers": _customer,
}


def convert_mobile_record(table_name: str, data: dict[str, Any]) -> dict[str, Any]:
    converter = _CONVERTERS.get(table_name)
    return converter(data) if converter else dict(data)


def apply_mobile_changes(store: LocalStore, changes: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Apply uploaded mobile changes to the local collections.

    Each change is {id, operation, table_name, data}. Unknown tables are
    skipped. Changes without a record id, or that fail to apply, are
    logged and returned in failed_changes; the rest still apply.
    """
    if not changes:
        return {
            "success": True,
            "message": "No changes to process",
            "processed_changes": [],
            "failed_changes": [],
        }

    processed: list[dict[str, Any]] = []
    failed: list[dict[str, Any]] = []
    for change in changes:
        table_name = change.get("table_name")
        key = MOBILE_TABLES.get(table_name)
        if key is None:
            logger.info("Unknown mobile table %s, skipping", table_name)
            continue

        operation = change.get("operation")
        data = change.get("data") or {}
        if data.get("id") is None:
            logger.warning("Rejecting %s change %s without a record id", table_name, change.get("id"))
            failed.append(change)
            continue
        try:
            if operation in ("insert", "update"):
                upsert_record(store, key, convert_mobile_record(table_name, data))
            elif operation == "delete":
                remove_record(store, key, data.get("id"))
            else:
                logger.warning("Unknown mobile operation %s", operation)
                continue
        except Exception as e:
            logger.error("Error processing %s change %s: %s", table_name, change.get("id"), e)
            failed.append(change)
            continue
        processed.append(change)

    logger.info("Processed %d of %d mobile changes", len(processed), len(changes))
    return {
        "success": True,
        "message": f"Successfully processed {len(processed)} changes",
        "processed_changes": processed,
        "failed_changes": failed,
    }


def collect_changes_since(store: LocalStore, since: str) -> list[dict[str, Any]]:
    """Local records changed after since, as mobile update changes, oldest first."""
    since_at = parse_iso(since)
    stamp_ms = int(time.time() * 1000)
    changes: list[tuple[Any, dict[str, Any]]] = []

    for key, table_name in COLLECTION_TO_MOBILE.items():
        for item in store.get(key) or []:
            changed = item.get("updated_at") or item.get("created_at")
            if not changed:
                continue
            try:
                changed_at = parse_iso(changed)
            except ValueError:
                logger.debug("Unparseable timestamp on %s/%s", key, item.get("id"))
                continue
            if changed_at > since_at:
                changes.append((changed_at, {
                    "id": f"{key}_{item.get('id')}_{stamp_ms}",
                    "operation": "update",
                    "table_name": table_name,
                    "data": item,
                    "created_at": changed,
                }))

    changes.sort(key=lambda pair: pair[0])
    return [change for _, change in changes]
