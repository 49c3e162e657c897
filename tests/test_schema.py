"""
Tests for the list group schema: enums, merge, reconciliation keys.
"""
import pytest

from pkg.lists.schema import (
    GroupDescriptor,
    ListGroup,
    ListGroupEntityTypes,
    ListGroupOptions,
    User,
    as_bool,
)


class TestListGroupOptions:

    def test_from_value_and_name(self):
        assert ListGroupOptions.from_str("list_stage") == ListGroupOptions.LIST_STAGE
        assert ListGroupOptions.from_str("ASSIGNEES") == ListGroupOptions.ASSIGNEES

    def test_empty_is_all(self):
        assert ListGroupOptions.from_str(None) == ListGroupOptions.ALL
        assert ListGroupOptions.from_str("") == ListGroupOptions.ALL

    def test_unknown_raises(self):
        with pytest.raises(ValueError):
            ListGroupOptions.from_str("priority")

    def test_non_string_raises_value_error(self):
        with pytest.raises(ValueError, match="Invalid grouping"):
            ListGroupOptions.from_str(5)
        with pytest.raises(ValueError):
            ListGroupOptions.from_str(["all"])


def test_descriptor_and_group_share_key():
    descriptor = GroupDescriptor(
        type=ListGroupOptions.ASSIGNEES, name="Ada Lovelace",
        entity_id=4, entity_type=ListGroupEntityTypes.USER,
    )
    group = ListGroup.from_descriptor(descriptor, list_id=1, group_by=ListGroupOptions.ASSIGNEES)
    assert group.key == descriptor.key == (4, "user", "Ada Lovelace")
    assert group.is_expanded is True
    assert group.id is None


def test_merge_converts_and_ignores():
    group = ListGroup(id=3, list_id=1, type=ListGroupOptions.ALL, name="All")
    group.merge({
        "type": "due_date",
        "entityType": "list_stage",
        "isExpanded": True,
        "listId": 99,
        "unknown": True,
    })
    assert group.type == ListGroupOptions.DUE_DATE
    assert group.entity_type == ListGroupEntityTypes.LIST_STAGE
    assert group.is_expanded is True
    assert group.list_id == 1



def test_merge_rejects_non_boolean_expanded():
    group = ListGroup(id=3, list_id=1, type=ListGroupOptions.ALL, name="All", is_expanded=True)
    with pytest.raises(ValueError, match="isExpanded"):
        group.merge({"isExpanded": "false"})
    with pytest.raises(ValueError):
        group.merge({"is_expanded": 0})
    assert group.is_expanded is True


def test_as_bool():
    assert as_bool(False, "flag") is False
    with pytest.raises(ValueError, match="flag"):
        as_bool("true", "flag")


def test_user_full_name():
    assert User(id=1, first_name="Alan", last_name="Turing").full_name == "Alan Turing"


def test_group_to_dict_camel_case():
    data = ListGroup(id=1, list_id=2, type=ListGroupOptions.ALL, name="All").to_dict()
    assert data["listId"] == 2
    assert data["isExpanded"] is False
    assert data["filter"] is None
