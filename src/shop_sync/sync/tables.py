"""
tables.py - The shop's remote tables and their local collections.

Remote tables use snake_case columns; several screens keep camelCase
records, so each mapping translates field names in one place.
"""

from typing import Any

from shop_sync.config import RECENT_INVOICE_LIMIT
from shop_sync.sync.mapping import (
    BackfillSource,
    BackfillSpec,
    Projection,
    Row,
    SyncRegistry,
    TableSyncSpec,
)

INVENTORY_PROJECTIONS = ("gold_items", "jewelry_items", "stones_items")


def _attr(row: Row, name: str, default: Any = "") -> Any:
    value = (row.get("attributes") or {}).get(name)
    return default if value is None else value


def _or(value: Any, default: Any) -> Any:
    return default if value is None else value


def _of_type(item_type: str):
    return lambda row: row.get("item_type") == item_type


# Pull: remote row -> local record

def gold_record(row: Row) -> Row:
    return {
        "id": row["id"],
        "name": row.get("name"),
        "weight": _attr(row, "weight"),
        "purity": _attr(row, "purity"),
        "price": _or(row.get("price"), 0),
        "image": _or(row.get("image"), ""),
    }


def jewelry_record(row: Row) -> Row:
    return {
        "id": row["id"],
        "name": row.get("name"),
        "description": _attr(row, "description"),
        "price": _or(row.get("price"), 0),
        "image": _or(row.get("image"), ""),
    }


def stone_record(row: Row) -> Row:
    return {
        "id": row["id"],
        "name": row.get("name"),
        "carat": _attr(row, "carat"),
        "clarity": _attr(row, "clarity"),
        "cut": _attr(row, "cut"),
        "price": _or(row.get("price"), 0),
        "image": _or(row.get("image"), ""),
    }


def invoice_record(row: Row) -> Row:
    return {
        "id": row["id"],
        "items": _or(row.get("items"), []),
        "subtotal": _or(row.get("subtotal"), 0),
        "tax": _or(row.get("tax"), 0),
        "total": _or(row.get("total"), 0),
        "date": row.get("date"),
        "customerName": _or(row.get("customer_name"), ""),
        "paymentMethod": _or(row.get("payment_method"), ""),
    }


# Backfill: local record -> remote row

def employee_row(e: Row) -> Row:
    return {
        "id": e["id"],
        "name": e.get("name"),
        "email": e.get("email"),
        "phone": e.get("phone"),
        "role": e.get("role"),
        "department": e.get("department"),
        "salary": e.get("salary"),
        "status": e.get("status"),
        "hire_date": e.get("hireDate"),
    }


def gold_row(g: Row) -> Row:
    return {
        "id": g["id"],
        "item_type": "gold",
        "name": g.get("name"),
        "attributes": {"weight": g.get("weight"), "purity": g.get("purity")},
        "price": g.get("price"),
        "image": g.get("image"),
    }


def jewelry_row(j: Row) -> Row:
    return {
        "id": j["id"],
        "item_type": "jewelry",
        "name": j.get("name"),
        "attributes": {"description": j.get("description")},
        "price": j.get("price"),
        "image": j.get("image"),
    }


def stone_row(s: Row) -> Row:
    return {
        "id": s["id"],
        "item_type": "stone",
        "name": s.get("name"),
        "attributes": {"carat": s.get("carat"), "clarity": s.get("clarity"), "cut": s.get("cut")},
        "price": s.get("price"),
        "image": s.get("image"),
    }


def invoice_row(x: Row) -> Row:
    return {
        "id": x["id"],
        "customer_name": x.get("customerName"),
        "subtotal": x.get("subtotal"),
        "tax": x.get("tax"),
        "total": x.get("total"),
        "date": x.get("date"),
        "payment_method": x.get("paymentMethod"),
        "items": _or(x.get("items"), []),
    }


def customer_row(c: Row) -> Row:
    return {
        "id": c["id"],
        "name": c.get("name"),
        "email": c.get("email"),
        "phone": c.get("phone"),
        "address": c.get("address"),
        "credit_limit": _or(c.get("creditLimit"), 0),
        "current_balance": _or(c.get("currentBalance"), 0),
        "total_purchases": _or(c.get("totalPurchases"), 0),
        "last_purchase_date": c.get("lastPurchaseDate"),
        "status": _or(c.get("status"), "active"),
    }


def transaction_row(t: Row) -> Row:
    return {
        "id": t["id"],
        "customer_id": t.get("customerId"),
        "type": t.get("type"),
        "amount": t.get("amount"),
        "description": t.get("description"),
        "date": t.get("date"),
        "invoice_id": t.get("invoiceId"),
        "payment_method": t.get("paymentMethod"),
    }


def default_registry() -> SyncRegistry:
    """The shop's tables, in the order sync_all() visits them."""
    registry = SyncRegistry()

    registry.register(TableSyncSpec("employees", (Projection("staff_employees"),)))
    registry.register(TableSyncSpec("craftsmen", (Projection("craftsmen"),)))
    registry.register(TableSyncSpec(
        "inventory_items",
        (
            Projection("inventory_items"),
            Projection("gold_items", gold_record, when=_of_type("gold")),
            Projection("jewelry_items", jewelry_record, when=_of_type("jewelry")),
            Projection("stones_items", stone_record, when=_of_type("stone")),
        ),
    ))
    registry.register(TableSyncSpec(
        "pos_invoices",
        (Projection("pos_recentInvoices", invoice_record, prepend=True, limit=RECENT_INVOICE_LIMIT),),
    ))
    registry.register(TableSyncSpec("customers", (Projection("customers"),)))
    registry.register(TableSyncSpec("customer_transactions", (Projection("customer_transactions"),)))

    registry.register_backfill(BackfillSpec("employees", (BackfillSource("staff_employees", employee_row),)))
    registry.register_backfill(BackfillSpec("craftsmen", (BackfillSource("craftsmen"),)))
    registry.register_backfill(BackfillSpec(
        "inventory_items",
        (
            BackfillSource("gold_items", gold_row),
            BackfillSource("jewelry_items", jewelry_row),
            BackfillSource("stones_items", stone_row),
        ),
    ))
    registry.register_backfill(BackfillSpec("pos_invoices", (BackfillSource("pos_recentInvoices", invoice_row),)))
    registry.register_backfill(BackfillSpec("customers", (BackfillSource("customers", customer_row),)))
    registry.register_backfill(BackfillSpec(
        "customer_transactions", (BackfillSource("customer_transactions", transaction_row),)
    ))

    return registry
