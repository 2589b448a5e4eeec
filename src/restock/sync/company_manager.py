"""CompanyManager: links this device to a multi-store organization.

A device is either standalone (no link stored) or linked to one company
code. While linked it can publish its completed sessions and suppliers, and
read the snapshots other stores published. Fetched snapshots are cached and
served stale whenever the directory cannot be reached.
"""

import logging

from restock.database.models import CompanyLink, Session, Snapshot, Supplier
from restock.database.repository import (
    CompanyLinkRepository,
    SnapshotCacheRepository,
)
from restock.utils.errors import RestockError
from restock.utils.normalize import now_ms

from .company_client import OrgDirectoryClient, OrgDirectoryError

logger = logging.getLogger(__name__)


class CompanyError(RestockError):
    """Base exception for company link operations."""


class NotLinkedError(CompanyError):
    """The operation needs a company link and there is none."""


class CompanyManager:
    """Company link lifecycle and the snapshot read-through cache."""

    def __init__(self, links: CompanyLinkRepository,
                 snapshots: SnapshotCacheRepository,
                 client: OrgDirectoryClient):
        self.links = links
        self.snapshots = snapshots
        self.client = client
        self.last_error: str | None = None

    @property
    def link(self) -> CompanyLink | None:
        return self.links.link

    @property
    def is_linked(self) -> bool:
        return self.links.link is not None

    def _fail(self, error: OrgDirectoryError, action: str):
        self.last_error = str(error)
        logger.warning(f"Failed to {action}: {error}")
        raise CompanyError(str(error)) from error

    # ── Link lifecycle ──

    def create_company(self, store_name: str) -> CompanyLink:
        self.last_error = None
        try:
            result = self.client.create(store_name)
        except OrgDirectoryError as e:
            self._fail(e, "create company")
        link = CompanyLink(
            code=result.code,
            org_id=result.org_id,
            store_name=store_name,
            joined_at=now_ms(),
        )
        return self.links.save(link)

    def join_company(self, code: str, store_name: str) -> CompanyLink:
        self.last_error = None
        try:
            result = self.client.join(code, store_name)
        except OrgDirectoryError as e:
            self._fail(e, "join company")
        link = CompanyLink(
            code=code,
            org_id=result.org_id,
            store_name=store_name,
            joined_at=now_ms(),
        )
        return self.links.save(link)

    def leave_company(self):
        """Return to standalone mode and drop every cached snapshot."""
        self.links.clear()
        self.snapshots.clear()
        self.last_error = None

    # ── Snapshots ──

    def publish_snapshot(self, sessions: list[Session],
                         suppliers: list[Supplier]) -> bool:
        """Publish completed sessions and all suppliers. False if standalone."""
        link = self.links.link
        if link is None:
            return False

        snapshot = {
            "storeName": link.store_name,
            "sessions": [s.to_dict() for s in sessions if s.is_completed],
            "suppliers": [s.to_dict() for s in suppliers],
        }
        self.last_error = None
        try:
            self.client.publish_snapshot(link.code, link.store_name, snapshot)
        except OrgDirectoryError as e:
            self._fail(e, "publish snapshot")
        return True

    def get_stores(self) -> list[str]:
        link = self.links.link
        if link is None:
            return []
        try:
            return self.client.list_stores(link.code)
        except OrgDirectoryError as e:
            self._fail(e, "fetch stores")

    def get_snapshot(self, store_name: str) -> Snapshot:
        """Fetch *store_name*'s snapshot, falling back to the cached copy."""
        link = self.links.link
        if link is None:
            raise NotLinkedError("Not linked to a company")

        try:
            snapshot = self.client.fetch_snapshot(link.code, store_name)
        except OrgDirectoryError as e:
            cached = self.snapshots.get(store_name)
            if cached is not None:
                logger.info(
                    f"Serving cached snapshot for {store_name!r}: {e}"
                )
                return cached
            self._fail(e, f"fetch snapshot for {store_name!r}")

        self.snapshots.put(snapshot, store_name=store_name)
        return snapshot
