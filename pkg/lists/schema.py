"""
List group schema.

A list shows its cards in groups. Each group is generated by one grouping
strategy (stage, assignee, due date or a single "All" bucket) and may own a
Filter whose expression tree selects the cards that belong to it.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any

from .filters import Expression, parse_where


class ListGroupOptions(Enum):
    """Grouping strategies a list can be displayed with."""
    ALL = "all"
    LIST_STAGE = "list_stage"
    ASSIGNEES = "assignees"
    DUE_DATE = "due_date"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "ListGroupOptions":
        """Accepts either the value ("list_stage") or the name ("LIST_STAGE")."""
        if value is None or value == "":
            return cls.ALL
        if not isinstance(value, str):
            raise ValueError(f"Invalid grouping: {value!r}")
        try:
            return cls(value.lower())
        except ValueError:
            pass
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Invalid grouping: {value}") from None


class ListGroupEntityTypes(Enum):
    """Kind of entity a generated group was derived from."""
    LIST_STAGE = "list_stage"
    USER = "user"


class FilterEntityTypes(Enum):
    """Kind of entity a Filter is attached to."""
    LIST_GROUP = "list_group"


class ListGroupDueDate(Enum):
    PAST_DUE = "Past Due"
    TODAY = "Today"
    UPCOMING = "Upcoming"
    NO_DUE_DATE = "No Due Date"


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


def as_bool(value: Any, name: str) -> bool:
    """Accept real booleans only ("false" would otherwise be truthy)."""
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


@dataclass
class Filter:
    """A declarative predicate owned by one entity (here: a list group)."""
    id: Optional[int]
    entity_id: int
    entity_type: FilterEntityTypes
    where: Expression

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entityId": self.entity_id,
            "entityType": self.entity_type.value,
            "where": self.where.to_dict(),
        }

    @classmethod
    def from_row(cls, data: Dict[str, Any]) -> "Filter":
        return cls(
            id=data["id"],
            entity_id=data["entity_id"],
            entity_type=FilterEntityTypes(data["entity_type"]),
            where=parse_where(data["where"]),
        )


@dataclass
class GroupDescriptor:
    """A generated group that has not been reconciled with storage yet."""
    type: ListGroupOptions
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None
    order: Optional[int] = None
    entity_id: Optional[int] = None
    entity_type: Optional[ListGroupEntityTypes] = None
    where: Optional[Expression] = None

    @property
    def key(self) -> tuple:
        """Reconciliation key shared with ListGroup.key."""
        return (self.entity_id, _enum_value(self.entity_type), self.name)


@dataclass
class ListGroup:
    """A named bucket of cards within a list."""

    id: Optional[int]
    list_id: int
    type: ListGroupOptions
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None
    order: Optional[int] = None
    is_expanded: bool = False
    entity_id: Optional[int] = None
    entity_type: Optional[ListGroupEntityTypes] = None

    # Populated by the listing query only
    filter: Optional[Filter] = None

    # Fields an update patch may touch
    MUTABLE_FIELDS = ("name", "color", "icon", "order", "is_expanded",
                      "type", "entity_id", "entity_type")

    @property
    def key(self) -> tuple:
        return (self.entity_id, _enum_value(self.entity_type), self.name)

    @classmethod
    def from_descriptor(cls, descriptor: GroupDescriptor, list_id: int,
                        group_by: ListGroupOptions) -> "ListGroup":
        return cls(
            id=None,
            list_id=list_id,
            type=group_by,
            name=descriptor.name,
            color=descriptor.color,
            icon=descriptor.icon,
            order=descriptor.order,
            is_expanded=True,
            entity_id=descriptor.entity_id,
            entity_type=descriptor.entity_type,
        )

    def merge(self, patch: Dict[str, Any]) -> "ListGroup":
        """Apply a partial update in place. Unknown keys are ignored."""
        for key, value in patch.items():
            attr = _CAMEL_TO_SNAKE.get(key, key)
            if attr not in self.MUTABLE_FIELDS:
                continue
            if attr == "type":
                value = ListGroupOptions.from_str(value) if not isinstance(value, ListGroupOptions) else value
            elif attr == "entity_type" and value is not None and not isinstance(value, ListGroupEntityTypes):
                value = ListGroupEntityTypes(value)
            elif attr == "is_expanded":
                value = as_bool(value, "isExpanded")
            setattr(self, attr, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "listId": self.list_id,
            "type": self.type.value,
            "name": self.name,
            "color": self.color,
            "icon": self.icon,
            "order": self.order,
            "isExpanded": self.is_expanded,
            "entityId": self.entity_id,
            "entityType": _enum_value(self.entity_type),
            "filter": self.filter.to_dict() if self.filter else None,
        }

    @classmethod
    def from_row(cls, data: Dict[str, Any]) -> "ListGroup":
        """Build from a sqlite row dict (snake_case columns)."""
        return cls(
            id=data["id"],
            list_id=data["list_id"],
            type=ListGroupOptions(data["type"]),
            name=data["name"],
            color=data.get("color"),
            icon=data.get("icon"),
            order=data.get("order"),
            is_expanded=bool(data.get("is_expanded", 0)),
            entity_id=data.get("entity_id"),
            entity_type=ListGroupEntityTypes(data["entity_type"]) if data.get("entity_type") else None,
        )


_CAMEL_TO_SNAKE = {
    "listId": "list_id",
    "isExpanded": "is_expanded",
    "entityId": "entity_id",
    "entityType": "entity_type",
}


@dataclass
class ListStage:
    """A pipeline stage of a list (Todo, Doing, Done...)."""
    id: int
    list_id: int
    name: str
    color: Optional[str] = None
    order: int = 0
    is_completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "listId": self.list_id,
            "name": self.name,
            "color": self.color,
            "order": self.order,
            "isCompleted": self.is_completed,
        }


@dataclass
class User:
    id: int
    first_name: str
    last_name: str
    photo: Optional[str] = None

    @property
    def full_name(self) -> str:
        return self.first_name + " " + self.last_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "photo": self.photo,
        }


@dataclass
class Card:
    """A card as seen from one list: its stage there and its assignees."""
    id: int
    title: str
    due_at: Optional[datetime] = None
    list_id: Optional[int] = None
    list_stage_id: Optional[int] = None
    assignee_ids: List[int] = field(default_factory=list)

    def record(self) -> Dict[str, Any]:
        """Flatten to the field paths filter conditions refer to."""
        return {
            "card.id": self.id,
            "card.title": self.title,
            "card.dueAt": self.due_at,
            "cardLists.listId": self.list_id,
            "cardLists.listStageId": self.list_stage_id,
            "users.id": list(self.assignee_ids),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "dueAt": self.due_at.isoformat() if self.due_at else None,
            "listId": self.list_id,
            "listStageId": self.list_stage_id,
            "assigneeIds": self.assignee_ids,
        }
