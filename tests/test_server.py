"""
Tests for the Flask API in list_server.py.
"""
from datetime import datetime, timezone

import pytest

import list_server
from pkg.lists.cards import CardStore
from pkg.lists.config import Config
from pkg.lists.groups import ListGroupsRepository
from pkg.lists.schema import ListGroup, ListGroupOptions

SECRET = "s3cret"
AUTH = {"X-API-Key": SECRET}


@pytest.fixture
def client(board, monkeypatch):
    monkeypatch.setenv("LISTGROUPS_TEST_SECRET", SECRET)
    cfg = Config(db_path=board["db"].db_path, api_secret_env="LISTGROUPS_TEST_SECRET")
    monkeypatch.setitem(list_server.app.config, "LISTGROUPS", cfg)
    list_server.app.config["TESTING"] = True
    with list_server.app.test_client() as c:
        yield c


def _generate(client, list_id, group_by, **extra):
    body = {"listId": list_id, "groupBy": group_by, **extra}
    return client.post("/api/list-groups/generate", json=body, headers=AUTH)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Generate & list
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_generate_stage_groups_ignoring_completed(client, board):
    resp = _generate(client, board["list_id"], "list_stage", ignoreCompleted=True)
    assert resp.status_code == 200
    data = resp.get_json()
    assert [g["name"] for g in data["groups"]] == ["Todo", "Doing"]
    assert data["groups"][0]["filter"]["where"]["and"][0]["operator"] == "eq"


def test_generate_accepts_enum_names(client, board):
    resp = _generate(client, board["list_id"], "DUE_DATE")
    assert resp.status_code == 200
    assert resp.get_json()["count"] == 4


def test_generate_rejects_unknown_strategy(client, board):
    resp = _generate(client, board["list_id"], "by_colour")
    assert resp.status_code == 400


def test_generate_rejects_string_ignore_completed(client, board):
    resp = _generate(client, board["list_id"], "list_stage", ignoreCompleted="yes")
    assert resp.status_code == 400


def test_generate_unknown_list(client):
    resp = _generate(client, 9999, "all")
    assert resp.status_code == 404


def test_generate_requires_api_key(client, board):
    resp = client.post("/api/list-groups/generate", json={"listId": board["list_id"]})
    assert resp.status_code == 401
    resp = client.post("/api/list-groups/generate", json={"listId": board["list_id"]},
                       headers={"X-API-Key": "wrong"})
    assert resp.status_code == 403


def test_list_groups(client, board):
    _generate(client, board["list_id"], "assignees")
    _generate(client, board["list_id"], "all")

    resp = client.get(f"/api/list-groups?listId={board['list_id']}&groupBy=assignees")
    data = resp.get_json()
    assert [g["name"] for g in data["groups"]] == ["Ada Lovelace", "Alan Turing", "No Assignee"]

    everything = client.get(f"/api/list-groups?listId={board['list_id']}").get_json()
    assert everything["count"] == 4


def test_list_groups_needs_list_id(client):
    assert client.get("/api/list-groups").status_code == 400


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Single group
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_get_missing_group(client):
    resp = client.get("/api/list-groups/12345")
    assert resp.status_code == 404
    assert "not found" in resp.get_json()["error"]


def test_update_group(client, board):
    group = _generate(client, board["list_id"], "due_date").get_json()["groups"][2]
    resp = client.put(f"/api/list-groups/{group['id']}",
                      json={"isExpanded": False, "name": "Later"}, headers=AUTH)
    assert resp.status_code == 200
    updated = resp.get_json()["group"]
    assert updated["name"] == "Later"
    assert updated["isExpanded"] is False
    assert updated["icon"] == group["icon"]


def test_update_missing_group(client):
    resp = client.put("/api/list-groups/777", json={"name": "x"}, headers=AUTH)
    assert resp.status_code == 404


def test_create_group_with_filter(client, board):
    body = {
        "listId": board["list_id"],
        "name": "Ada's work",
        "type": "all",
        "order": 5,
        "filter": {"where": {"and": [{"field": "users.id", "operator": "eq",
                                      "value": board["users"]["ada"].id}]}},
    }
    resp = client.post("/api/list-groups", json=body, headers=AUTH)
    assert resp.status_code == 201
    group = resp.get_json()["group"]
    assert group["filter"]["entityId"] == group["id"]

    again = client.post("/api/list-groups", json=body, headers=AUTH)
    assert again.status_code == 409



def test_create_group_rejects_string_expanded(client, board):
    body = {"listId": board["list_id"], "name": "Loose", "isExpanded": "false"}
    resp = client.post("/api/list-groups", json=body, headers=AUTH)
    assert resp.status_code == 400
    assert "isExpanded" in resp.get_json()["error"]


def test_create_group_bad_filter(client, board):
    body = {"listId": board["list_id"], "name": "Broken",
            "filter": {"where": {"field": "users.id", "operator": "like"}}}
    resp = client.post("/api/list-groups", json=body, headers=AUTH)
    assert resp.status_code == 400
    listed = client.get(f"/api/list-groups?listId={board['list_id']}").get_json()
    assert listed["count"] == 0


def test_update_rejects_non_string_type(client, board):
    group = _generate(client, board["list_id"], "all").get_json()["groups"][0]
    resp = client.put(f"/api/list-groups/{group['id']}", json={"type": 5}, headers=AUTH)
    assert resp.status_code == 400
    assert client.get(f"/api/list-groups/{group['id']}").get_json()["group"]["type"] == "all"


def test_update_rejects_string_expanded(client, board):
    group = _generate(client, board["list_id"], "all").get_json()["groups"][0]
    resp = client.put(f"/api/list-groups/{group['id']}", json={"isExpanded": "false"},
                      headers=AUTH)
    assert resp.status_code == 400
    assert client.get(f"/api/list-groups/{group['id']}").get_json()["group"]["isExpanded"] is True


def test_group_cards(client, board):
    CardStore(board["db"]).create("Write spec", board["list_id"],
                                  list_stage_id=board["stages"]["Todo"].id)
    groups = _generate(client, board["list_id"], "list_stage").get_json()["groups"]
    todo = next(g for g in groups if g["name"] == "Todo")
    doing = next(g for g in groups if g["name"] == "Doing")

    assert client.get(f"/api/list-groups/{todo['id']}/cards").get_json()["count"] == 1
    assert client.get(f"/api/list-groups/{doing['id']}/cards").get_json()["count"] == 0



def test_create_group_rejects_scalar_between(client, board):
    body = {"listId": board["list_id"], "name": "Today-ish",
            "filter": {"where": {"and": [{"field": "card.dueAt", "operator": "between",
                                          "value": ":startOfDay"}]}}}
    resp = client.post("/api/list-groups", json=body, headers=AUTH)
    assert resp.status_code == 400
    assert "between" in resp.get_json()["error"]


def test_group_cards_with_iso_date_filter(client, board):
    store = CardStore(board["db"])
    store.create("Early", board["list_id"], due_at=datetime(2026, 1, 10, tzinfo=timezone.utc))
    store.create("Late", board["list_id"], due_at=datetime(2027, 1, 10, tzinfo=timezone.utc))
    body = {"listId": board["list_id"], "name": "Before June",
            "filter": {"where": {"and": [{"field": "card.dueAt", "operator": "lt",
                                          "value": "2026-06-01T00:00:00+00:00"}]}}}
    group = client.post("/api/list-groups", json=body, headers=AUTH).get_json()["group"]

    resp = client.get(f"/api/list-groups/{group['id']}/cards")
    assert resp.status_code == 200
    assert [c["title"] for c in resp.get_json()["cards"]] == ["Early"]


def test_group_cards_with_stored_bad_filter(client, board):
    db = board["db"]
    group = ListGroupsRepository(db).create(
        ListGroup(id=None, list_id=board["list_id"], type=ListGroupOptions.ALL, name="Legacy"))
    with db.connect() as conn:
        conn.execute(
            'INSERT INTO filters (entity_id, entity_type, "where") VALUES (?, ?, ?)',
            (group.id, "list_group",
             '{"and": [{"field": "card.dueAt", "operator": "between", "value": 3}]}'),
        )
    resp = client.get(f"/api/list-groups/{group.id}/cards")
    assert resp.status_code == 400


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config & auth
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_no_secret_makes_server_read_only(client, board, monkeypatch):
    monkeypatch.delenv("LISTGROUPS_UNSET_SECRET", raising=False)
    cfg = Config(db_path=board["db"].db_path, api_secret_env="LISTGROUPS_UNSET_SECRET")
    monkeypatch.setitem(list_server.app.config, "LISTGROUPS", cfg)

    resp = _generate(client, board["list_id"], "all")
    assert resp.status_code == 503
    assert client.get(f"/api/list-groups?listId={board['list_id']}").status_code == 200


def test_database_built_once_per_path(client, board, monkeypatch):
    calls = []
    original = list_server.Database.__init__

    def counting_init(self, db_path=None):
        calls.append(db_path)
        original(self, db_path)

    monkeypatch.setattr(list_server, "_databases", {})
    monkeypatch.setattr(list_server.Database, "__init__", counting_init)

    client.get(f"/api/list-groups?listId={board['list_id']}")
    client.get(f"/api/list-groups?listId={board['list_id']}")
    assert list_server.get_db() is list_server.get_db()
    assert calls == [board["db"].db_path]

def test_health(client):
    assert client.get("/health").get_json()["status"] == "ok"
