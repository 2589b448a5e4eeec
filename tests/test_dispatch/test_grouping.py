"""Tests for grouping session items by destination supplier."""

from restock.database.models import SessionItem, Supplier
from restock.dispatch.grouping import (
    UNASSIGNED_SUPPLIER_ID,
    dispatchable_groups,
    group_by_destination,
    unassigned_items,
)


def _item(item_id, supplier_id=None):
    return SessionItem(id=item_id, product_name=f"Product {item_id}",
                       quantity=1, supplier_id=supplier_id)


SUPPLIERS = [
    Supplier(id="s1", name="Acme Dairy", email="orders@acme.com"),
    Supplier(id="s2", name="Bolt Bakery", email="hello@bolt.com"),
    Supplier(id="s3", name="Crisp Produce"),
]


class TestGroupByDestination:
    def test_empty_session(self):
        assert group_by_destination([], SUPPLIERS) == []

    def test_first_appearance_order(self):
        items = [_item("1", "s2"), _item("2", "s1"), _item("3", "s2")]
        groups = group_by_destination(items, SUPPLIERS)
        assert [g.supplier_id for g in groups] == ["s2", "s1"]
        assert [i.id for i in groups[0].items] == ["1", "3"]

    def test_group_carries_supplier_details(self):
        [group] = group_by_destination([_item("1", "s1")], SUPPLIERS)
        assert group.supplier_name == "Acme Dairy"
        assert group.supplier_email == "orders@acme.com"

    def test_supplier_without_email_gets_empty_string(self):
        [group] = group_by_destination([_item("1", "s3")], SUPPLIERS)
        assert group.supplier_email == ""

    def test_missing_and_unknown_suppliers_share_unassigned(self):
        items = [_item("1"), _item("2", "deleted"), _item("3", "s1")]
        groups = group_by_destination(items, SUPPLIERS)
        assert [g.supplier_id for g in groups] == [UNASSIGNED_SUPPLIER_ID, "s1"]
        assert groups[0].is_unassigned
        assert [i.id for i in groups[0].items] == ["1", "2"]

    def test_every_item_lands_in_exactly_one_group(self):
        items = [_item(str(n), f"s{n % 4}") for n in range(20)]
        groups = group_by_destination(items, SUPPLIERS)
        grouped = [i.id for g in groups for i in g.items]
        assert sorted(grouped) == sorted(i.id for i in items)
        assert len(grouped) == len(set(grouped))


class TestDispatchable:
    def test_unassigned_excluded(self):
        groups = group_by_destination(
            [_item("1"), _item("2", "s1")], SUPPLIERS
        )
        assert [g.supplier_id for g in dispatchable_groups(groups)] == ["s1"]
        assert [i.id for i in unassigned_items(groups)] == ["1"]

    def test_no_unassigned(self):
        groups = group_by_destination([_item("1", "s1")], SUPPLIERS)
        assert unassigned_items(groups) == []
