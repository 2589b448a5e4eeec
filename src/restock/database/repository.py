"""Repository layer: typed read/write façades over the versioned store.

One repository per entity family. Each keeps an in-memory copy hydrated by
``load()`` and writes through to the store before a mutator returns, so two
back-to-back mutations can never overwrite each other out of order.
"""

import logging
from typing import Optional

from restock.io.validators import (
    clear_invalid_supplier_id,
    is_valid_named_record,
    is_valid_sender_profile_record,
    is_valid_session_item_record,
    is_valid_session_record,
    raise_for_errors,
    validate_item_fields,
    validate_sender_fields,
    validate_supplier_fields,
)
from restock.utils.constants import (
    COMPANY_LINK_KEY,
    PRODUCTS_KEY,
    SENDER_PROFILE_KEY,
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_PENDING_EMAILS,
    SESSIONS_KEY,
    SNAPSHOT_CACHE_KEY,
    SUPPLIERS_KEY,
)
from restock.utils.errors import RestockError
from restock.utils.normalize import (
    generate_id,
    normalize_name,
    now_ms,
    safe_string,
)

from .migrations import (
    migrate_company_link,
    migrate_products,
    migrate_sender_profile,
    migrate_snapshot_cache,
    migrate_suppliers,
    sessions_migration,
)
from .models import (
    CompanyLink,
    ProductHistory,
    SenderProfile,
    Session,
    SessionItem,
    Snapshot,
    Supplier,
)
from .store import VersionedStore

logger = logging.getLogger(__name__)


class InvalidTransitionError(RestockError):
    """A session status change that would move it backwards."""


class _EntityRepository:
    """Shared hydration and write-through plumbing."""

    KEY = ""

    def __init__(self, store: VersionedStore):
        self.store = store
        self._hydrated = False

    @property
    def is_hydrated(self) -> bool:
        """True once at least one load has completed."""
        return self._hydrated

    def _migration(self):
        return None

    def _read(self):
        return self.store.read_versioned(self.KEY, self._migration())

    def _persist(self, data) -> bool:
        return self.store.write(self.KEY, data)


# ── Sender profile ──────────────────────────────────────────────

class SenderProfileRepository(_EntityRepository):
    KEY = SENDER_PROFILE_KEY

    def __init__(self, store: VersionedStore):
        super().__init__(store)
        self._profile: Optional[SenderProfile] = None

    @property
    def profile(self) -> Optional[SenderProfile]:
        return self._profile

    def _migration(self):
        return migrate_sender_profile

    def load(self):
        data = self._read()
        if data is not None and not is_valid_sender_profile_record(data):
            logger.warning("Stored sender profile is malformed, discarding")
            self.store.remove(self.KEY)
            data = None
        self._profile = SenderProfile.from_dict(data) if data else None
        self._hydrated = True

    def save(self, profile: SenderProfile) -> SenderProfile:
        raise_for_errors(validate_sender_fields(profile.name, profile.email))
        self._profile = SenderProfile(
            name=profile.name.strip(),
            email=profile.email.strip(),
            store_name=safe_string(profile.store_name) or None,
        )
        self._persist(self._profile.to_dict())
        return self._profile

    def update(self, name: str = None, email: str = None,
               store_name: str = None) -> SenderProfile:
        """Change only the fields given; others keep their stored value."""
        current = self._profile or SenderProfile()
        return self.save(SenderProfile(
            name=name if name is not None else current.name,
            email=email if email is not None else current.email,
            store_name=(
                store_name if store_name is not None else current.store_name
            ),
        ))

    def clear(self):
        self._profile = None
        self.store.remove(self.KEY)


# ── Named collections (suppliers, product history) ──────────────

class _NamedCollectionRepository(_EntityRepository):
    """A list of records with string ``id`` and a name lookup key."""

    MODEL = None
    ID_PREFIX = "id"

    def __init__(self, store: VersionedStore):
        super().__init__(store)
        self._items: list = []

    def load(self):
        data = self._read()
        if data is None:
            records = []
        elif not isinstance(data, list):
            logger.warning(f"Stored {self.KEY} is not a list, resetting")
            records = []
            self._persist(records)
        else:
            records = [r for r in data if is_valid_named_record(r)]
            if len(records) != len(data):
                logger.warning(
                    f"Dropped {len(data) - len(records)} malformed "
                    f"{self.KEY} record(s)"
                )
                self._persist(records)
        self._items = [self.MODEL.from_dict(r) for r in records]
        self._hydrated = True

    def all(self) -> list:
        return list(self._items)

    def get(self, entry_id: str):
        for entry in self._items:
            if entry.id == entry_id:
                return entry
        return None

    def find_by_name(self, name: str):
        """First entry whose name matches ignoring case and outer spaces."""
        target = normalize_name(name)
        if not target:
            return None
        for entry in self._items:
            if normalize_name(entry.name) == target:
                return entry
        return None

    def remove_by_id(self, entry_id: str) -> bool:
        remaining = [e for e in self._items if e.id != entry_id]
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        self._save()
        return True

    def remove_all(self):
        self._items = []
        self._save()

    def _save(self) -> bool:
        return self._persist([e.to_dict() for e in self._items])

    def _upsert(self, name: str, fields: dict):
        existing = self.find_by_name(name)
        if existing is not None:
            for attr, value in fields.items():
                if value is not None:
                    setattr(existing, attr, value)
            self._save()
            return existing

        entry = self.MODEL(id=generate_id(self.ID_PREFIX), name=name.strip())
        for attr, value in fields.items():
            if value is not None:
                setattr(entry, attr, value)
        self._items.append(entry)
        self._save()
        return entry


class SupplierRepository(_NamedCollectionRepository):
    KEY = SUPPLIERS_KEY
    MODEL = Supplier
    ID_PREFIX = "supplier"

    def _migration(self):
        return migrate_suppliers

    def upsert_by_name(self, name: str, email: str = None) -> Supplier:
        raise_for_errors(validate_supplier_fields(name, email))
        return self._upsert(name, {"email": email.strip() if email else None})

    def update(self, supplier_id: str, name: str = None,
               email: str = None) -> Optional[Supplier]:
        supplier = self.get(supplier_id)
        if supplier is None:
            return None
        raise_for_errors(validate_supplier_fields(
            name if name is not None else supplier.name, email
        ))
        if name is not None:
            supplier.name = name.strip()
        if email is not None:
            supplier.email = email.strip() or None
        self._save()
        return supplier


class ProductRepository(_NamedCollectionRepository):
    KEY = PRODUCTS_KEY
    MODEL = ProductHistory
    ID_PREFIX = "product"

    def _migration(self):
        return migrate_products

    def upsert_by_name(self, name: str, last_supplier_id: str = None,
                       last_qty: float = None) -> ProductHistory:
        if not normalize_name(name):
            raise_for_errors(["Product name is required"])
        return self._upsert(name, {
            "last_supplier_id": last_supplier_id,
            "last_qty": last_qty,
        })


# ── Sessions ────────────────────────────────────────────────────

class SessionRepository(_EntityRepository):
    """Restock sessions and their line items.

    *suppliers* lets the legacy migration turn stored supplier names into
    supplier ids; load the supplier repository first.
    """

    KEY = SESSIONS_KEY

    def __init__(self, store: VersionedStore,
                 suppliers: Optional[SupplierRepository] = None):
        super().__init__(store)
        self.suppliers = suppliers
        self._sessions: list[Session] = []

    def _migration(self):
        known = self.suppliers.all() if self.suppliers else []
        return sessions_migration(known)

    def load(self):
        data = self._read()
        if data is None:
            records = []
        elif not isinstance(data, list):
            logger.warning("Stored sessions are not a list, resetting")
            records = []
            self._persist(records)
        else:
            records, changed = self._clean(data)
            if changed:
                logger.warning(
                    f"Dropped or repaired {changed} malformed session "
                    f"record(s), saving cleaned version"
                )
                self._persist(records)
        self._sessions = [Session.from_dict(r) for r in records]
        self._hydrated = True

    @staticmethod
    def _clean(data: list) -> tuple[list, int]:
        """Keep well-formed sessions and items; count what was dropped or
        repaired. A non-string supplier id is cleared, leaving the item
        unassigned."""
        cleaned = []
        changed = 0
        for record in data:
            if not is_valid_session_record(record):
                changed += 1
                continue
            items = []
            for raw_item in record["items"]:
                item = clear_invalid_supplier_id(raw_item)
                if item is not raw_item:
                    changed += 1
                if is_valid_session_item_record(item):
                    items.append(item)
                else:
                    changed += 1
            cleaned.append({**record, "items": items})
        return cleaned, changed

    def _save(self) -> bool:
        return self._persist([s.to_dict() for s in self._sessions])

    # ── Queries ──

    def all(self) -> list[Session]:
        return list(self._sessions)

    def get(self, session_id: str) -> Optional[Session]:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def active_session(self) -> Optional[Session]:
        for session in self._sessions:
            if session.is_active:
                return session
        return None

    # ── Session lifecycle ──

    def create_session(self) -> Session:
        """Start a new active session; any other active one is completed."""
        for session in self._sessions:
            if session.is_active:
                session.status = SESSION_STATUS_COMPLETED
        session = Session(
            id=generate_id("session"),
            created_at=now_ms(),
            status=SESSION_STATUS_ACTIVE,
        )
        self._sessions.append(session)
        self._save()
        return session

    def delete_session(self, session_id: str) -> bool:
        remaining = [s for s in self._sessions if s.id != session_id]
        if len(remaining) == len(self._sessions):
            return False
        self._sessions = remaining
        self._save()
        return True

    def set_status(self, session_id: str, status: str) -> Optional[Session]:
        """Move a session forward. Raises InvalidTransitionError otherwise."""
        session = self.get(session_id)
        if session is None:
            return None
        if not session.can_transition_to(status):
            raise InvalidTransitionError(
                f"Session {session_id} cannot move from "
                f"'{session.status}' to '{status}'"
            )
        if session.status != status:
            session.status = status
            self._save()
        return session

    def mark_pending(self, session_id: str) -> Optional[Session]:
        return self.set_status(session_id, SESSION_STATUS_PENDING_EMAILS)

    def complete_session(self, session_id: str) -> Optional[Session]:
        return self.set_status(session_id, SESSION_STATUS_COMPLETED)

    # ── Items ──

    def add_item(self, session_id: str, product_name: str, quantity: float,
                 supplier_id: str = None) -> Optional[SessionItem]:
        raise_for_errors(validate_item_fields(product_name, quantity))
        session = self.get(session_id)
        if session is None:
            return None
        item = SessionItem(
            id=generate_id("item"),
            product_name=product_name.strip(),
            quantity=quantity,
            supplier_id=supplier_id,
        )
        session.items.append(item)
        self._save()
        return item

    def update_item(self, session_id: str, item_id: str,
                    product_name: str = None, quantity: float = None,
                    supplier_id: str = None) -> Optional[SessionItem]:
        """Change only the fields given on one item."""
        session = self.get(session_id)
        item = session.get_item(item_id) if session else None
        if item is None:
            return None
        raise_for_errors(validate_item_fields(
            product_name if product_name is not None else item.product_name,
            quantity if quantity is not None else item.quantity,
        ))
        if product_name is not None:
            item.product_name = product_name.strip()
        if quantity is not None:
            item.quantity = quantity
        if supplier_id is not None:
            item.supplier_id = supplier_id
        self._save()
        return item

    def remove_item(self, session_id: str, item_id: str) -> bool:
        session = self.get(session_id)
        if session is None or session.get_item(item_id) is None:
            return False
        session.items = [i for i in session.items if i.id != item_id]
        self._save()
        return True


# ── Company link & snapshot cache ───────────────────────────────

class CompanyLinkRepository(_EntityRepository):
    KEY = COMPANY_LINK_KEY

    def __init__(self, store: VersionedStore):
        super().__init__(store)
        self._link: Optional[CompanyLink] = None

    @property
    def link(self) -> Optional[CompanyLink]:
        return self._link

    def _migration(self):
        return migrate_company_link

    def load(self):
        data = self._read()
        try:
            self._link = CompanyLink.from_dict(data) if data else None
        except (KeyError, TypeError, AttributeError):
            logger.warning("Stored company link is malformed, discarding")
            self.store.remove(self.KEY)
            self._link = None
        self._hydrated = True

    def save(self, link: CompanyLink) -> CompanyLink:
        self._link = link
        self._persist(link.to_dict())
        return link

    def clear(self):
        self._link = None
        self.store.remove(self.KEY)


class SnapshotCacheRepository(_EntityRepository):
    """Last fetched snapshot per store name. Entries never expire."""

    KEY = SNAPSHOT_CACHE_KEY

    def __init__(self, store: VersionedStore):
        super().__init__(store)
        self._snapshots: dict[str, Snapshot] = {}

    def _migration(self):
        return migrate_snapshot_cache

    def load(self):
        data = self._read()
        if isinstance(data, dict):
            self._snapshots = {
                name: Snapshot.from_dict(snap)
                for name, snap in data.items()
                if isinstance(snap, dict)
            }
        else:
            self._snapshots = {}
        self._hydrated = True

    def all(self) -> dict[str, Snapshot]:
        return dict(self._snapshots)

    def get(self, store_name: str) -> Optional[Snapshot]:
        return self._snapshots.get(store_name)

    def put(self, snapshot: Snapshot, store_name: str = None) -> Snapshot:
        """Replace the cached entry for *store_name* (default: its own)."""
        self._snapshots[store_name or snapshot.store_name] = snapshot
        self._persist({
            name: snap.to_dict() for name, snap in self._snapshots.items()
        })
        return snapshot

    def clear(self):
        self._snapshots = {}
        self.store.remove(self.KEY)
