"""Tests for the entity repositories."""

import json

import pytest

from restock.database.models import CompanyLink, SenderProfile, Snapshot
from restock.database.repository import (
    CompanyLinkRepository,
    InvalidTransitionError,
    ProductRepository,
    SenderProfileRepository,
    SessionRepository,
    SnapshotCacheRepository,
    SupplierRepository,
)
from restock.io.validators import ValidationError


class TestHydration:
    def test_not_hydrated_before_load(self, store):
        assert SupplierRepository(store).is_hydrated is False

    def test_hydrated_after_empty_load(self, store):
        repo = SupplierRepository(store)
        repo.load()
        assert repo.is_hydrated is True
        assert repo.all() == []

    def test_load_is_idempotent(self, store):
        repo = SupplierRepository(store)
        repo.load()
        repo.upsert_by_name("Acme")
        repo.load()
        repo.load()
        assert [s.name for s in repo.all()] == ["Acme"]

    def test_second_instance_sees_writes(self, store, suppliers):
        suppliers.upsert_by_name("Acme", email="orders@acme.com")
        fresh = SupplierRepository(store)
        fresh.load()
        assert fresh.find_by_name("acme").email == "orders@acme.com"

    def test_corrupt_storage_loads_empty(self, store):
        store.write_raw("suppliers", "[{]")
        repo = SupplierRepository(store)
        repo.load()
        assert repo.is_hydrated
        assert repo.all() == []

    def test_non_list_collection_is_reset(self, store):
        store.write("products", {"id": "p1"})
        repo = ProductRepository(store)
        repo.load()
        assert repo.all() == []
        assert store.read_versioned("products") == []


class TestSenderProfile:
    def test_absent_profile(self, profiles):
        assert profiles.profile is None
        assert profiles.is_hydrated

    def test_save_and_reload(self, store, profiles):
        profiles.save(SenderProfile(name=" Dana ", email="dana@shop.com",
                                    store_name="Main Street Grocers"))
        fresh = SenderProfileRepository(store)
        fresh.load()
        assert fresh.profile == SenderProfile(
            name="Dana", email="dana@shop.com",
            store_name="Main Street Grocers",
        )

    def test_store_name_optional(self, store, profiles):
        profiles.save(SenderProfile(name="Dana", email="dana@shop.com"))
        assert store.read_versioned("senderProfile") == {
            "name": "Dana", "email": "dana@shop.com",
        }

    def test_blank_store_name_stored_as_none(self, store, profiles):
        saved = profiles.save(SenderProfile(
            name="Dana", email="dana@shop.com", store_name="   "
        ))
        assert saved.store_name is None
        assert "storeName" not in store.read_versioned("senderProfile")

    def test_update_keeps_unspecified_fields(self, profiles, sender):
        updated = profiles.update(store_name="Corner Shop")
        assert updated.name == "Dana Ortiz"
        assert updated.email == "dana@mainstreetgrocers.com"
        assert updated.store_name == "Corner Shop"

    def test_invalid_email_rejected(self, profiles):
        with pytest.raises(ValidationError):
            profiles.save(SenderProfile(name="Dana", email="not-an-email"))
        assert profiles.profile is None

    def test_clear_removes_key(self, store, profiles, sender):
        profiles.clear()
        assert profiles.profile is None
        assert "senderProfile" not in store.keys()

    def test_legacy_profile_migrated(self, store):
        store.write_raw("senderProfile", json.dumps(
            {"name": "Dana", "email": "dana@shop.com", "storeName": None}
        ))
        repo = SenderProfileRepository(store)
        repo.load()
        assert repo.profile == SenderProfile(name="Dana", email="dana@shop.com")


class TestSuppliers:
    def test_upsert_creates(self, suppliers):
        supplier = suppliers.upsert_by_name("  Acme  ", email="orders@acme.com")
        assert supplier.name == "Acme"
        assert supplier.id.startswith("supplier-")
        assert suppliers.get(supplier.id) is supplier

    def test_upsert_is_idempotent_under_case_and_whitespace(self, store, suppliers):
        first = suppliers.upsert_by_name("Acme", email="orders@acme.com")
        second = suppliers.upsert_by_name("  acme  ")
        assert second.id == first.id
        assert len(suppliers.all()) == 1
        # undefined email did not overwrite
        assert second.email == "orders@acme.com"
        assert len(store.read_versioned("suppliers")) == 1

    def test_upsert_defined_fields_override(self, suppliers):
        suppliers.upsert_by_name("Acme", email="old@acme.com")
        updated = suppliers.upsert_by_name("ACME", email="new@acme.com")
        assert updated.email == "new@acme.com"

    def test_generated_ids_are_unique(self, suppliers):
        ids = {suppliers.upsert_by_name(f"Supplier {n}").id for n in range(25)}
        assert len(ids) == 25

    def test_find_by_name(self, suppliers):
        suppliers.upsert_by_name("Bolt Bakery")
        assert suppliers.find_by_name("bolt bakery ").name == "Bolt Bakery"
        assert suppliers.find_by_name("Bolt") is None
        assert suppliers.find_by_name("   ") is None

    def test_empty_name_rejected(self, suppliers):
        with pytest.raises(ValidationError):
            suppliers.upsert_by_name("   ")

    def test_invalid_email_rejected(self, suppliers):
        with pytest.raises(ValidationError):
            suppliers.upsert_by_name("Acme", email="acme.com")

    def test_update(self, suppliers):
        supplier = suppliers.upsert_by_name("Acme")
        suppliers.update(supplier.id, email="orders@acme.com")
        assert suppliers.get(supplier.id).email == "orders@acme.com"
        assert suppliers.update("missing", name="x") is None

    def test_remove_by_id(self, store, suppliers):
        a = suppliers.upsert_by_name("Acme")
        suppliers.upsert_by_name("Bolt")
        assert suppliers.remove_by_id(a.id) is True
        assert suppliers.remove_by_id(a.id) is False
        assert [s["name"] for s in store.read_versioned("suppliers")] == ["Bolt"]

    def test_remove_all(self, suppliers):
        suppliers.upsert_by_name("Acme")
        suppliers.remove_all()
        assert suppliers.all() == []

    def test_malformed_records_dropped_and_resaved(self, store):
        store.write("suppliers", [{"id": "1", "name": "Acme"}, {"id": 2}])
        repo = SupplierRepository(store)
        repo.load()
        assert [s.name for s in repo.all()] == ["Acme"]
        assert store.read_versioned("suppliers") == [{"id": "1", "name": "Acme"}]


class TestProducts:
    def test_upsert_preserves_unspecified(self, products):
        first = products.upsert_by_name("Milk", last_supplier_id="s1", last_qty=4)
        second = products.upsert_by_name(" MILK ", last_qty=6)
        assert second.id == first.id
        assert second.last_supplier_id == "s1"
        assert second.last_qty == 6
        assert len(products.all()) == 1

    def test_find_by_name(self, products):
        products.upsert_by_name("Oat Milk")
        assert products.find_by_name("oat milk").name == "Oat Milk"

    def test_empty_name_rejected(self, products):
        with pytest.raises(ValidationError):
            products.upsert_by_name("")


class TestSessions:
    def test_create_session(self, sessions):
        session = sessions.create_session()
        assert session.status == "active"
        assert session.items == []
        assert sessions.active_session() is session

    def test_create_completes_previous_active(self, sessions):
        first = sessions.create_session()
        second = sessions.create_session()
        assert first.status == "completed"
        assert sessions.active_session() is second

    def test_items_persist(self, store, suppliers, sessions):
        session = sessions.create_session()
        item = sessions.add_item(session.id, " Milk ", 2, supplier_id="s1")
        assert item.product_name == "Milk"

        fresh = SessionRepository(store, suppliers=suppliers)
        fresh.load()
        [loaded] = fresh.all()
        assert loaded.items[0].product_name == "Milk"
        assert loaded.items[0].supplier_id == "s1"

    def test_add_item_validation(self, sessions):
        session = sessions.create_session()
        with pytest.raises(ValidationError):
            sessions.add_item(session.id, "", 1)
        with pytest.raises(ValidationError):
            sessions.add_item(session.id, "Milk", 0)
        assert session.items == []

    def test_add_item_unknown_session(self, sessions):
        assert sessions.add_item("nope", "Milk", 1) is None

    def test_update_item_partial(self, sessions):
        session = sessions.create_session()
        item = sessions.add_item(session.id, "Milk", 2, supplier_id="s1")
        sessions.update_item(session.id, item.id, quantity=5)
        assert item.quantity == 5
        assert item.supplier_id == "s1"
        assert item.product_name == "Milk"

    def test_remove_item(self, sessions):
        session = sessions.create_session()
        item = sessions.add_item(session.id, "Milk", 2)
        assert sessions.remove_item(session.id, item.id) is True
        assert sessions.remove_item(session.id, item.id) is False

    def test_delete_from_any_state(self, sessions):
        session = sessions.create_session()
        sessions.mark_pending(session.id)
        assert sessions.delete_session(session.id) is True
        assert sessions.get(session.id) is None

    def test_status_moves_forward(self, sessions):
        session = sessions.create_session()
        sessions.mark_pending(session.id)
        assert session.status == "pendingEmails"
        sessions.complete_session(session.id)
        assert session.status == "completed"

    def test_status_never_regresses(self, sessions):
        session = sessions.create_session()
        sessions.mark_pending(session.id)
        with pytest.raises(InvalidTransitionError):
            sessions.set_status(session.id, "active")
        sessions.complete_session(session.id)
        with pytest.raises(InvalidTransitionError):
            sessions.mark_pending(session.id)

    def test_unknown_status_rejected(self, sessions):
        session = sessions.create_session()
        with pytest.raises(InvalidTransitionError):
            sessions.set_status(session.id, "archived")

    def test_malformed_sessions_dropped_and_resaved(self, store, suppliers):
        store.write("sessions", [
            {"id": "a", "createdAt": 1, "status": "active", "items": [
                {"id": "i1", "productName": "Milk", "quantity": 1},
                {"id": "i2", "productName": "No quantity"},
            ]},
            {"id": "b", "createdAt": 2, "status": "shipped", "items": []},
        ])
        repo = SessionRepository(store, suppliers=suppliers)
        repo.load()
        [session] = repo.all()
        assert [i.id for i in session.items] == ["i1"]
        assert store.read_versioned("sessions") == [
            {"id": "a", "createdAt": 1, "status": "active", "items": [
                {"id": "i1", "productName": "Milk", "quantity": 1},
            ]},
        ]


class TestCompanyLinkAndSnapshots:
    def test_link_round_trip(self, store, company_links):
        link = CompanyLink(code="ABC123", org_id="org-1",
                           store_name="Main", joined_at=1700000000000)
        company_links.save(link)
        fresh = CompanyLinkRepository(store)
        fresh.load()
        assert fresh.link == link

    def test_clear_link(self, store, company_links):
        company_links.save(CompanyLink(code="A", org_id="o",
                                       store_name="s", joined_at=1))
        company_links.clear()
        assert company_links.link is None
        assert "company_link" not in store.keys()

    def test_snapshot_put_replaces_entry(self, store, snapshot_cache):
        snapshot_cache.put(Snapshot(store_name="North", published_at=1))
        snapshot_cache.put(Snapshot(store_name="North", published_at=2))
        fresh = SnapshotCacheRepository(store)
        fresh.load()
        assert fresh.get("North").published_at == 2
        assert list(fresh.all()) == ["North"]


class TestStoredSupplierReferences:
    def test_non_string_supplier_id_is_cleared(self, store, suppliers):
        store.write("sessions", [
            {"id": "s1", "createdAt": 1, "status": "active", "items": [
                {"id": "i1", "productName": "Milk", "quantity": 1,
                 "supplierId": {"bad": 1}},
                {"id": "i2", "productName": "Eggs", "quantity": 2,
                 "supplierId": ["x"]},
                {"id": "i3", "productName": "Bread", "quantity": 1,
                 "supplierId": "sup-1"},
            ]},
        ])
        repo = SessionRepository(store, suppliers=suppliers)
        repo.load()

        [session] = repo.all()
        assert [i.id for i in session.items] == ["i1", "i2", "i3"]
        assert [i.supplier_id for i in session.items] == [None, None, "sup-1"]
        # repaired copy written back
        stored_items = store.read_versioned("sessions")[0]["items"]
        assert "supplierId" not in stored_items[0]
        assert "supplierId" not in stored_items[1]
        assert stored_items[2]["supplierId"] == "sup-1"

    def test_repaired_session_can_be_grouped(self, store, suppliers, profiles):
        from restock.dispatch.dispatcher import Dispatcher

        acme = suppliers.upsert_by_name("Acme", email="orders@acme.com")
        store.write("sessions", [
            {"id": "s1", "createdAt": 1, "status": "active", "items": [
                {"id": "i1", "productName": "Milk", "quantity": 1,
                 "supplierId": {"bad": 1}},
                {"id": "i2", "productName": "Eggs", "quantity": 2,
                 "supplierId": acme.id},
            ]},
        ])
        repo = SessionRepository(store, suppliers=suppliers)
        repo.load()

        dispatcher = Dispatcher(repo, suppliers, profiles, relay=None)
        drafts = dispatcher.request_send("s1")
        assert [d.supplier_id for d in drafts] == [acme.id]
        assert [i.id for i in dispatcher.unassigned_items] == ["i1"]
