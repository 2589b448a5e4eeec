"""Per-entity schema migrations.

A stored value is a ``StoredValue(version, data)``. Each entity keeps a table
of upgrade steps indexed by the version they upgrade *from*; ``migrate_*``
walks the steps from the stored version up to ``CURRENT_VERSION``. A missing
step, an unknown version or a step returning None means the data cannot be
recovered and the caller discards it.

Version history:

- v0: unversioned JSON written by the first release (bare lists/dicts;
  session items may name their supplier instead of referencing its id;
  ``storeName`` may be null)
- v1: versioned envelope, current shapes
"""

from functools import partial
from typing import Any, Callable, Iterable, NamedTuple, Optional

from restock.io.validators import (
    clear_invalid_supplier_id,
    is_valid_company_link_record,
    is_valid_named_record,
    is_valid_sender_profile_record,
    is_valid_session_item_record,
)
from restock.utils.normalize import normalize_name

from .models import Supplier
from .store import CURRENT_VERSION

Step = Callable[[Any], Optional[Any]]


class StoredValue(NamedTuple):
    version: int
    data: Any


# v0 sessions only knew two statuses
_V0_SESSION_STATUSES = ("active", "completed")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def run_steps(steps: dict[int, Step], stored: StoredValue) -> Optional[Any]:
    """Apply *steps* to bring *stored* up to ``CURRENT_VERSION``."""
    version, data = stored
    if version < 0 or version > CURRENT_VERSION:
        return None
    while version < CURRENT_VERSION:
        step = steps.get(version)
        if step is None:
            return None
        data = step(data)
        if data is None:
            return None
        version += 1
    return data


# ── Sender profile ─────────────────────────────────────────────

def _sender_profile_v0_to_v1(data) -> Optional[dict]:
    if not is_valid_sender_profile_record(data):
        return None
    profile = {"name": data["name"], "email": data["email"]}
    if isinstance(data.get("storeName"), str):
        profile["storeName"] = data["storeName"]
    return profile


SENDER_PROFILE_STEPS = {0: _sender_profile_v0_to_v1}


def migrate_sender_profile(old_version: int, old_data) -> Optional[dict]:
    return run_steps(SENDER_PROFILE_STEPS, StoredValue(old_version, old_data))


# ── Suppliers ──────────────────────────────────────────────────

def _suppliers_v0_to_v1(data) -> Optional[list]:
    if not isinstance(data, list):
        return None
    suppliers = []
    for record in data:
        if not is_valid_named_record(record):
            continue
        supplier = {"id": record["id"], "name": record["name"]}
        if isinstance(record.get("email"), str) and record["email"]:
            supplier["email"] = record["email"]
        suppliers.append(supplier)
    return suppliers


SUPPLIER_STEPS = {0: _suppliers_v0_to_v1}


def migrate_suppliers(old_version: int, old_data) -> Optional[list]:
    return run_steps(SUPPLIER_STEPS, StoredValue(old_version, old_data))


# ── Product history ────────────────────────────────────────────

def _products_v0_to_v1(data) -> Optional[list]:
    if not isinstance(data, list):
        return None
    products = []
    for record in data:
        if not is_valid_named_record(record):
            continue
        product = {"id": record["id"], "name": record["name"]}
        if isinstance(record.get("lastSupplierId"), str):
            product["lastSupplierId"] = record["lastSupplierId"]
        if _is_number(record.get("lastQty")):
            product["lastQty"] = record["lastQty"]
        products.append(product)
    return products


PRODUCT_STEPS = {0: _products_v0_to_v1}


def migrate_products(old_version: int, old_data) -> Optional[list]:
    return run_steps(PRODUCT_STEPS, StoredValue(old_version, old_data))


# ── Sessions ───────────────────────────────────────────────────

def _sessions_v0_to_v1(data, suppliers: Iterable[Supplier] = ()) -> Optional[list]:
    if not isinstance(data, list):
        return None

    ids_by_name = {}
    for supplier in suppliers:
        ids_by_name.setdefault(normalize_name(supplier.name), supplier.id)

    sessions = []
    for record in data:
        if not (
            isinstance(record, dict)
            and isinstance(record.get("id"), str)
            and _is_number(record.get("createdAt"))
            and record.get("status") in _V0_SESSION_STATUSES
            and isinstance(record.get("items"), list)
        ):
            continue

        items = []
        for raw_item in map(clear_invalid_supplier_id, record["items"]):
            if not is_valid_session_item_record(raw_item):
                continue
            item = {
                "id": raw_item["id"],
                "productName": raw_item["productName"],
                "quantity": raw_item["quantity"],
            }
            if isinstance(raw_item.get("supplierId"), str):
                item["supplierId"] = raw_item["supplierId"]
            elif isinstance(raw_item.get("supplierName"), str):
                supplier_id = ids_by_name.get(
                    normalize_name(raw_item["supplierName"])
                )
                if supplier_id:
                    item["supplierId"] = supplier_id
            items.append(item)

        sessions.append({
            "id": record["id"],
            "createdAt": record["createdAt"],
            "items": items,
            "status": record["status"],
        })
    return sessions


def migrate_sessions(
    old_version: int, old_data, suppliers: Iterable[Supplier] = ()
) -> Optional[list]:
    """Upgrade stored sessions.

    *suppliers* resolves legacy supplier names to ids; bind it with
    ``sessions_migration`` before handing the function to the store.
    """
    steps = {0: partial(_sessions_v0_to_v1, suppliers=list(suppliers))}
    return run_steps(steps, StoredValue(old_version, old_data))


def sessions_migration(suppliers: Iterable[Supplier]):
    """Return a two-argument sessions migration bound to *suppliers*."""
    return partial(migrate_sessions, suppliers=list(suppliers))


# ── Company link & snapshot cache ──────────────────────────────

def _company_link_v0_to_v1(data) -> Optional[dict]:
    if not is_valid_company_link_record(data):
        return None
    return {
        "code": data["code"],
        "orgId": data["orgId"],
        "storeName": data["storeName"],
        "joinedAt": data["joinedAt"],
    }


COMPANY_LINK_STEPS = {0: _company_link_v0_to_v1}


def migrate_company_link(old_version: int, old_data) -> Optional[dict]:
    return run_steps(COMPANY_LINK_STEPS, StoredValue(old_version, old_data))


def _snapshot_cache_v0_to_v1(data) -> Optional[dict]:
    if not isinstance(data, dict):
        return None
    return {
        store_name: snapshot
        for store_name, snapshot in data.items()
        if isinstance(store_name, str) and isinstance(snapshot, dict)
    }


SNAPSHOT_CACHE_STEPS = {0: _snapshot_cache_v0_to_v1}


def migrate_snapshot_cache(old_version: int, old_data) -> Optional[dict]:
    return run_steps(SNAPSHOT_CACHE_STEPS, StoredValue(old_version, old_data))
