"""
seed.py - Starter data for an empty shop.

seed_missing() fills each required collection that is absent or empty
and never touches a populated one, so it is safe to run on every start.
"""

import logging
from datetime import timedelta
from typing import Any

from shop_sync.config import REQUIRED_COLLECTIONS
from shop_sync.db.connection import execute_in_transaction
from shop_sync.store.local_store import LocalStore
from shop_sync.utils.clock import to_iso, utc_now

logger = logging.getLogger(__name__)


def build_starter_data() -> dict[str, list[dict[str, Any]]]:
    """Starter records keyed by collection, stamped with the current time."""
    now = utc_now()
    stamp = to_iso(now)
    today = now.date().isoformat()
    last_week = (now - timedelta(days=7)).date().isoformat()

    def stamped(record: dict[str, Any]) -> dict[str, Any]:
        return {**record, "created_at": stamp, "updated_at": stamp}

    return {
        "jewelry_items": [
            stamped({
                "id": "jewelry-1", "name": "Gold Ring", "type": "Ring",
                "gemstone": "Diamond", "carat": 1.5, "metal": "Gold 18K",
                "price": 15000, "inStock": 10, "isArtificial": False, "image": "💍",
            }),
            stamped({
                "id": "jewelry-2", "name": "Silver Necklace", "type": "Necklace",
                "gemstone": "Pearl", "carat": 0, "metal": "Silver",
                "price": 8000, "inStock": 8, "isArtificial": False, "image": "📿",
            }),
            stamped({
                "id": "jewelry-3", "name": "Diamond Earrings", "type": "Earrings",
                "gemstone": "Diamond", "carat": 2.0, "metal": "Platinum",
                "price": 25000, "inStock": 5, "isArtificial": False, "image": "💎",
            }),
        ],
        "gold_items": [
            stamped({
                "id": "gold-1", "name": "18K Gold Bar", "weight": "10g", "purity": "18K",
                "price": 50000, "stock": 15, "inStock": 15, "image": "🥇",
            }),
            stamped({
                "id": "gold-2", "name": "22K Gold Chain", "weight": "25g", "purity": "22K",
                "price": 120000, "stock": 12, "inStock": 12, "image": "⛓️",
            }),
        ],
        "stones_items": [
            stamped({
                "id": "stone-1", "name": "Diamond", "carat": "2.5", "clarity": "FL",
                "cut": "Round", "price": 250000, "stock": 20, "inStock": 20, "image": "💎",
            }),
            stamped({
                "id": "stone-2", "name": "Ruby", "carat": "3.0", "clarity": "VVS1",
                "cut": "Oval", "price": 180000, "stock": 18, "inStock": 18, "image": "🔴",
            }),
        ],
        "craftsmen": [
            stamped({
                "id": "craftsman-1", "name": "Alessandro Romano",
                "specialization": "Gold Smithing", "experience_years": 15,
                "phone": "+1-555-0201", "email": "alessandro.romano@jewelry.com",
                "hourly_rate": 85, "is_active": 1,
            }),
            stamped({
                "id": "craftsman-2", "name": "Priya Sharma",
                "specialization": "Diamond Setting", "experience_years": 12,
                "phone": "+1-555-0202", "email": "priya.sharma@jewelry.com",
                "hourly_rate": 95, "is_active": 1,
            }),
        ],
        "staff_employees": [
            stamped({
                "id": "staff-1", "name": "David Thompson", "role": "Manager",
                "department": "Sales", "phone": "+1-555-1001",
                "email": "david.thompson@jewelry.com", "salary": 75000, "is_active": 1,
            }),
            stamped({
                "id": "staff-2", "name": "Lisa Anderson", "role": "Sales Representative",
                "department": "Sales", "phone": "+1-555-1002",
                "email": "lisa.anderson@jewelry.com", "salary": 45000, "is_active": 1,
            }),
        ],
        "customers": [
            stamped({
                "id": "customer-1", "name": "John Smith", "email": "john.smith@email.com",
                "phone": "+1-555-2001", "address": "123 Main St, New York, NY 10001",
                "creditLimit": 100000, "currentBalance": 25000, "totalPurchases": 125000,
                "lastPurchaseDate": today, "status": "active",
            }),
            stamped({
                "id": "customer-2", "name": "Emily Davis", "email": "emily.davis@email.com",
                "phone": "+1-555-2002", "address": "456 Oak Ave, Los Angeles, CA 90210",
                "creditLimit": 75000, "currentBalance": 0, "totalPurchases": 45000,
                "lastPurchaseDate": last_week, "status": "active",
            }),
        ],
        "pos_recentInvoices": [
            stamped({
                "id": "INV-001", "customer_id": "customer-1", "customer_name": "John Smith",
                "items": [{"id": "jewelry-1", "name": "Gold Ring", "quantity": 1, "price": 15000}],
                "subtotal": 15000, "tax": 1200, "total": 16200,
                "payment_method": "Credit Card", "status": "Completed",
            }),
        ],
    }


def _needs_seed(store: LocalStore, key: str) -> bool:
    try:
        value = store.get(key)
    except Exception as e:
        logger.warning("Unreadable collection %s will be reseeded: %s", key, e)
        return True
    return value is None or (isinstance(value, list) and len(value) == 0)


def seed_missing(store: LocalStore) -> list[str]:
    """
    Populate absent or empty required collections.

    All missing collections are written in one transaction.

    Returns:
        The collection keys that were seeded
    """
    missing = [key for key in REQUIRED_COLLECTIONS if _needs_seed(store, key)]
    if not missing:
        logger.info("All collections already populated")
        return []

    data = build_starter_data()

    def _write(conn):
        for key in missing:
            store.set(key, data[key])

    execute_in_transaction(store.connection, _write)
    for key in missing:
        logger.info("Seeded %s with %d records", key, len(data[key]))
    return missing
