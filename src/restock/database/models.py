"""Data models for the persisted entities.

Attributes are snake_case; ``to_dict``/``from_dict`` use the camelCase keys
of the stored JSON.
"""

from dataclasses import dataclass, field
from typing import Optional

from restock.utils.constants import (
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUSES,
)


def _drop_none(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def _dict_list(value) -> list[dict]:
    """The dict entries of *value* if it is a list, else an empty list."""
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


@dataclass
class SenderProfile:
    name: str = ""
    email: str = ""
    store_name: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none({
            "name": self.name,
            "email": self.email,
            "storeName": self.store_name,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "SenderProfile":
        return cls(
            name=data.get("name", ""),
            email=data.get("email", ""),
            store_name=data.get("storeName"),
        )


@dataclass
class Supplier:
    id: str = ""
    name: str = ""
    email: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none({"id": self.id, "name": self.name, "email": self.email})

    @classmethod
    def from_dict(cls, data: dict) -> "Supplier":
        return cls(id=data["id"], name=data["name"], email=data.get("email"))


@dataclass
class ProductHistory:
    id: str = ""
    name: str = ""
    last_supplier_id: Optional[str] = None
    last_qty: Optional[float] = None

    def to_dict(self) -> dict:
        return _drop_none({
            "id": self.id,
            "name": self.name,
            "lastSupplierId": self.last_supplier_id,
            "lastQty": self.last_qty,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "ProductHistory":
        return cls(
            id=data["id"],
            name=data["name"],
            last_supplier_id=data.get("lastSupplierId"),
            last_qty=data.get("lastQty"),
        )


@dataclass
class SessionItem:
    id: str = ""
    product_name: str = ""
    quantity: float = 1
    supplier_id: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none({
            "id": self.id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "supplierId": self.supplier_id,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "SessionItem":
        return cls(
            id=data["id"],
            product_name=data["productName"],
            quantity=data["quantity"],
            supplier_id=data.get("supplierId"),
        )


@dataclass
class Session:
    id: str = ""
    created_at: int = 0
    items: list[SessionItem] = field(default_factory=list)
    status: str = SESSION_STATUS_ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == SESSION_STATUS_ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status == SESSION_STATUS_COMPLETED

    def can_transition_to(self, status: str) -> bool:
        """True if *status* is not behind the current status."""
        if status not in SESSION_STATUSES:
            return False
        return (
            SESSION_STATUSES.index(status)
            >= SESSION_STATUSES.index(self.status)
        )

    def get_item(self, item_id: str) -> Optional[SessionItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "items": [i.to_dict() for i in self.items],
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            id=data["id"],
            created_at=data["createdAt"],
            items=[SessionItem.from_dict(i) for i in data.get("items", [])],
            status=data["status"],
        )


@dataclass
class CompanyLink:
    code: str = ""
    org_id: str = ""
    store_name: str = ""
    joined_at: int = 0

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "orgId": self.org_id,
            "storeName": self.store_name,
            "joinedAt": self.joined_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompanyLink":
        return cls(
            code=data["code"],
            org_id=data["orgId"],
            store_name=data["storeName"],
            joined_at=data["joinedAt"],
        )


@dataclass
class Snapshot:
    """Another store's published state, as served by the directory."""
    store_name: str = ""
    published_at: int = 0
    sessions: list[dict] = field(default_factory=list)
    suppliers: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "storeName": self.store_name,
            "publishedAt": self.published_at,
            "sessions": list(self.sessions),
            "suppliers": list(self.suppliers),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        return cls(
            store_name=data.get("storeName", ""),
            published_at=data.get("publishedAt", 0),
            sessions=_dict_list(data.get("sessions")),
            suppliers=_dict_list(data.get("suppliers")),
        )
