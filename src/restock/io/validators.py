"""Validation rules for user input and for records read back from storage."""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from restock.database.models import ProductHistory, Session, SessionItem, Supplier
from restock.utils.constants import SESSION_STATUSES
from restock.utils.errors import RestockError

# local-part "@" domain-with-dot, no whitespace
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationError(RestockError):
    """Input rejected before it reached storage or the network."""


def is_valid_email(email) -> bool:
    """Basic syntactic check: ``local@domain.tld``."""
    if not email or not isinstance(email, str):
        return False
    return EMAIL_PATTERN.match(email.strip()) is not None


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── User input ─────────────────────────────────────────────────

def validate_item_fields(product_name, quantity) -> list[str]:
    """Validate a session line item. Returns list of error strings."""
    errors = []
    if not isinstance(product_name, str) or not product_name.strip():
        errors.append("Product name is required")
    if not _is_number(quantity):
        errors.append("Quantity must be a number")
    elif quantity <= 0:
        errors.append("Quantity must be positive")
    return errors


def validate_supplier_fields(name, email=None) -> list[str]:
    """Validate supplier input. Email is optional but must be well formed."""
    errors = []
    if not isinstance(name, str) or not name.strip():
        errors.append("Supplier name is required")
    if email is not None and email != "" and not is_valid_email(email):
        errors.append("Invalid supplier email")
    return errors


def validate_sender_fields(name, email) -> list[str]:
    errors = []
    if not isinstance(name, str) or not name.strip():
        errors.append("Sender name is required")
    if not is_valid_email(email):
        errors.append("Invalid sender email")
    return errors


def raise_for_errors(errors: list[str]):
    """Raise a ValidationError joining *errors*, if there are any."""
    if errors:
        raise ValidationError("; ".join(errors))


# ── Stored records ─────────────────────────────────────────────

def is_valid_session_item_record(item) -> bool:
    supplier_id = item.get("supplierId") if isinstance(item, dict) else None
    return (
        isinstance(item, dict)
        and isinstance(item.get("id"), str)
        and isinstance(item.get("productName"), str)
        and _is_number(item.get("quantity"))
        and (supplier_id is None or isinstance(supplier_id, str))
    )


def clear_invalid_supplier_id(item):
    """Return *item* without a ``supplierId`` that is not a string.

    The item is kept and becomes unassigned. Anything that is not a dict is
    returned unchanged.
    """
    if not isinstance(item, dict):
        return item
    supplier_id = item.get("supplierId")
    if supplier_id is None or isinstance(supplier_id, str):
        return item
    return {k: v for k, v in item.items() if k != "supplierId"}


def is_valid_session_record(session) -> bool:
    return (
        isinstance(session, dict)
        and isinstance(session.get("id"), str)
        and _is_number(session.get("createdAt"))
        and session.get("status") in SESSION_STATUSES
        and isinstance(session.get("items"), list)
    )


def is_valid_named_record(record) -> bool:
    """Suppliers and product history entries: string ``id`` and ``name``."""
    return (
        isinstance(record, dict)
        and isinstance(record.get("id"), str)
        and isinstance(record.get("name"), str)
    )


def is_valid_company_link_record(link) -> bool:
    return (
        isinstance(link, dict)
        and isinstance(link.get("code"), str)
        and isinstance(link.get("orgId"), str)
        and isinstance(link.get("storeName"), str)
        and _is_number(link.get("joinedAt"))
    )


def is_valid_sender_profile_record(profile) -> bool:
    return (
        isinstance(profile, dict)
        and isinstance(profile.get("name"), str)
        and isinstance(profile.get("email"), str)
    )


# ── Cross-entity references ────────────────────────────────────

ORPHANED_SUPPLIER_ID = "orphaned_supplier_id"
ORPHANED_PRODUCT_SUPPLIER = "orphaned_product_supplier"
MISSING_SUPPLIER_EMAIL = "missing_supplier_email"
INVALID_SUPPLIER_EMAIL = "invalid_supplier_email"


@dataclass
class ReferenceIssue:
    kind: str = ""
    message: str = ""
    entity_id: str = ""
    entity_type: str = ""


@dataclass
class CrossStoreReport:
    errors: list[ReferenceIssue] = field(default_factory=list)
    warnings: list[ReferenceIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ItemSupplierCheck:
    is_valid: bool = True
    supplier: Optional[Supplier] = None
    error: Optional[str] = None
    warning: Optional[str] = None


def _supplier_email_warning(supplier: Supplier) -> Optional[ReferenceIssue]:
    if not supplier.email:
        return ReferenceIssue(
            kind=MISSING_SUPPLIER_EMAIL,
            message=f'Supplier "{supplier.name}" is referenced but has no '
                    f'email address',
            entity_id=supplier.id,
            entity_type="supplier",
        )
    if not is_valid_email(supplier.email):
        return ReferenceIssue(
            kind=INVALID_SUPPLIER_EMAIL,
            message=f'Supplier "{supplier.name}" has an invalid email '
                    f'address "{supplier.email}"',
            entity_id=supplier.id,
            entity_type="supplier",
        )
    return None


def validate_cross_store_relationships(
    sessions: Iterable[Session],
    suppliers: Iterable[Supplier],
    products: Iterable[ProductHistory] = (),
) -> CrossStoreReport:
    """Check the supplier references held by sessions and product history.

    Errors: a session item or product pointing at a supplier id that no
    longer exists. Warnings: a referenced supplier that cannot receive
    email, reported once per supplier.
    """
    by_id = {s.id: s for s in suppliers}
    report = CrossStoreReport()
    warned = set()

    for session in sessions:
        for item in session.items:
            if not item.supplier_id:
                continue
            supplier = by_id.get(item.supplier_id)
            if supplier is None:
                report.errors.append(ReferenceIssue(
                    kind=ORPHANED_SUPPLIER_ID,
                    message=f'Session item "{item.product_name}" references '
                            f'non-existent supplier ID "{item.supplier_id}"',
                    entity_id=item.id,
                    entity_type="session_item",
                ))
                continue
            if supplier.id in warned:
                continue
            warning = _supplier_email_warning(supplier)
            if warning is not None:
                warned.add(supplier.id)
                report.warnings.append(warning)

    for product in products:
        if product.last_supplier_id and product.last_supplier_id not in by_id:
            report.errors.append(ReferenceIssue(
                kind=ORPHANED_PRODUCT_SUPPLIER,
                message=f'Product "{product.name}" references non-existent '
                        f'supplier ID "{product.last_supplier_id}"',
                entity_id=product.id,
                entity_type="product",
            ))

    return report


def validate_session_item_supplier(
    item: SessionItem, suppliers: Iterable[Supplier]
) -> ItemSupplierCheck:
    """Resolve one item's supplier before it is added to a session."""
    if not item.supplier_id:
        return ItemSupplierCheck()
    supplier = next((s for s in suppliers if s.id == item.supplier_id), None)
    if supplier is None:
        return ItemSupplierCheck(
            is_valid=False,
            error=f'Supplier with ID "{item.supplier_id}" not found',
        )
    warning = _supplier_email_warning(supplier)
    return ItemSupplierCheck(
        supplier=supplier,
        warning=warning.message if warning else None,
    )
