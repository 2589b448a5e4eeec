"""Shared test fixtures."""

import json

import httpx
import pytest

from restock.database.connection import DatabaseConnection
from restock.database.models import SenderProfile
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
from restock.dispatch.relay_client import EmailRelayClient

RELAY_URL = "https://relay.test/send"


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an initialized database connection."""
    conn = DatabaseConnection(db_path)
    initialize_database(conn)
    return conn


@pytest.fixture
def store(db):
    return VersionedStore(db)


@pytest.fixture
def profiles(store):
    repo = SenderProfileRepository(store)
    repo.load()
    return repo


@pytest.fixture
def suppliers(store):
    repo = SupplierRepository(store)
    repo.load()
    return repo


@pytest.fixture
def products(store):
    repo = ProductRepository(store)
    repo.load()
    return repo


@pytest.fixture
def sessions(store, suppliers):
    repo = SessionRepository(store, suppliers=suppliers)
    repo.load()
    return repo


@pytest.fixture
def company_links(store):
    repo = CompanyLinkRepository(store)
    repo.load()
    return repo


@pytest.fixture
def snapshot_cache(store):
    repo = SnapshotCacheRepository(store)
    repo.load()
    return repo


@pytest.fixture
def sender(profiles):
    """A saved sender profile with a valid reply-to address."""
    return profiles.save(SenderProfile(
        name="Dana Ortiz",
        email="dana@mainstreetgrocers.com",
        store_name="Main Street Grocers",
    ))


class RelayRecorder:
    """Fake relay endpoint: records each JSON body, answers via *responder*.

    *responder* gets the decoded body and returns an ``httpx.Response``.
    """

    def __init__(self, responder=None):
        self.requests: list[dict] = []
        self.responder = responder or (
            lambda body: httpx.Response(
                200, json={"success": True, "messageId": "msg-1"}
            )
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        return self.responder(body)

    def client(self) -> EmailRelayClient:
        return EmailRelayClient(
            base_url=RELAY_URL,
            device_id="device-test",
            client=httpx.Client(transport=httpx.MockTransport(self.handler)),
        )


@pytest.fixture
def relay_recorder():
    return RelayRecorder()


@pytest.fixture
def relay_factory():
    """Build a RelayRecorder around a custom responder."""
    return RelayRecorder
