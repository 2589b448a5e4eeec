"""Application entry point: wires the store, repositories and services."""

import logging
import sys
from pathlib import Path

from restock.config import Config
from restock.utils.constants import APP_NAME, APP_VERSION
from restock.database.connection import DatabaseConnection
from restock.database.repository import (
    CompanyLinkRepository,
    ProductRepository,
    SenderProfileRepository,
    SessionRepository,
    SnapshotCacheRepository,
    SupplierRepository,
)
from restock.database.schema import initialize_database
from restock.database.store import VersionedStore
from restock.dispatch.dispatcher import Dispatcher
from restock.dispatch.relay_client import EmailRelayClient
from restock.io.validators import (
    CrossStoreReport,
    validate_cross_store_relationships,
)
from restock.sync.company_client import OrgDirectoryClient
from restock.sync.company_manager import CompanyManager

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None):
    """Root logging setup driven by ``Config.LOG_LEVEL``."""
    logging.basicConfig(
        level=(level or Config.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class RestockApp:
    """One instance of every repository and service, built once per process.

    Collaborators are passed in by reference so tests can build as many
    isolated instances as they need.
    """

    def __init__(self, db_path: str | Path | None = None,
                 relay: EmailRelayClient | None = None,
                 directory: OrgDirectoryClient | None = None):
        self.db = DatabaseConnection(db_path or Config.DATABASE_PATH)
        initialize_database(self.db)
        self.store = VersionedStore(self.db)

        self.sender_profile = SenderProfileRepository(self.store)
        self.suppliers = SupplierRepository(self.store)
        self.products = ProductRepository(self.store)
        self.sessions = SessionRepository(self.store, suppliers=self.suppliers)
        self.company_link = CompanyLinkRepository(self.store)
        self.snapshot_cache = SnapshotCacheRepository(self.store)

        self.relay = relay or EmailRelayClient(
            device_id=Config.get_device_id()
        )
        self.dispatcher = Dispatcher(
            self.sessions, self.suppliers, self.sender_profile, self.relay
        )
        self.company = CompanyManager(
            self.company_link,
            self.snapshot_cache,
            directory or OrgDirectoryClient(),
        )

    def hydrate(self):
        """Load every repository. Suppliers go before sessions."""
        self.sender_profile.load()
        self.suppliers.load()
        self.products.load()
        self.sessions.load()
        self.company_link.load()
        self.snapshot_cache.load()

    @property
    def is_hydrated(self) -> bool:
        return all(repo.is_hydrated for repo in (
            self.sender_profile, self.suppliers, self.products,
            self.sessions, self.company_link, self.snapshot_cache,
        ))

    def check_references(self) -> CrossStoreReport:
        """Validate supplier references across sessions and product history."""
        return validate_cross_store_relationships(
            self.sessions.all(), self.suppliers.all(), self.products.all()
        )

    def reset(self):
        """Erase all local data and reload empty repositories."""
        self.dispatcher.cancel()
        self.dispatcher.acknowledge()
        self.store.clear()
        self.hydrate()

    def close(self):
        self.relay.close()
        self.company.client.close()


def main():
    """Hydrate local data and log a status summary."""
    configure_logging()
    logger.info(f"{APP_NAME} {APP_VERSION} starting")
    app = RestockApp()
    try:
        app.hydrate()
        active = app.sessions.active_session()
        profile = app.sender_profile.profile
        logger.info(
            f"Loaded {len(app.sessions.all())} session(s), "
            f"{len(app.suppliers.all())} supplier(s), "
            f"{len(app.products.all())} product(s)"
        )
        logger.info(
            f"Sender: {profile.email if profile else 'not set up'}; "
            f"active session: {active.id if active else 'none'}; "
            f"company: {app.company.link.code if app.company.is_linked else 'standalone'}"
        )
        report = app.check_references()
        for issue in report.errors + report.warnings:
            logger.warning(issue.message)
    finally:
        app.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
