"""Partition a session's line items into one group per destination supplier."""

from dataclasses import dataclass, field

from restock.database.models import SessionItem, Supplier

# Bucket for items whose supplier is missing or no longer exists
UNASSIGNED_SUPPLIER_ID = "__unassigned__"
UNASSIGNED_SUPPLIER_NAME = "Unassigned"


@dataclass
class DestinationGroup:
    supplier_id: str = ""
    supplier_name: str = ""
    supplier_email: str = ""
    items: list[SessionItem] = field(default_factory=list)

    @property
    def is_unassigned(self) -> bool:
        return self.supplier_id == UNASSIGNED_SUPPLIER_ID


def group_by_destination(
    items: list[SessionItem], suppliers: list[Supplier]
) -> list[DestinationGroup]:
    """Group *items* by supplier in first-appearance order.

    Every input item lands in exactly one group. Items without a resolvable
    supplier share a single unassigned group, kept in the result so callers
    can show it, but never dispatched.
    """
    by_id = {s.id: s for s in suppliers}
    groups: dict[str, DestinationGroup] = {}

    for item in items:
        supplier = by_id.get(item.supplier_id) if item.supplier_id else None
        key = supplier.id if supplier else UNASSIGNED_SUPPLIER_ID

        group = groups.get(key)
        if group is None:
            if supplier is None:
                group = DestinationGroup(
                    supplier_id=UNASSIGNED_SUPPLIER_ID,
                    supplier_name=UNASSIGNED_SUPPLIER_NAME,
                )
            else:
                group = DestinationGroup(
                    supplier_id=supplier.id,
                    supplier_name=supplier.name,
                    supplier_email=supplier.email or "",
                )
            groups[key] = group
        group.items.append(item)

    return list(groups.values())


def dispatchable_groups(groups: list[DestinationGroup]) -> list[DestinationGroup]:
    return [g for g in groups if not g.is_unassigned]


def unassigned_items(groups: list[DestinationGroup]) -> list[SessionItem]:
    for group in groups:
        if group.is_unassigned:
            return list(group.items)
    return []
