#!/usr/bin/env python3
"""
List Groups Server
------------------
JSON API over the list group synthesizer, backed by SQLite.

Usage:
    python list_server.py --db ./listgroups.db --port 3000

API:
    GET  /api/list-groups?listId=&groupBy=   → { groups, count }
    POST /api/list-groups                    → create one group
    POST /api/list-groups/generate           → JSON body: { listId, ignoreCompleted, groupBy }
                                               Returns: { groups, count }
    GET  /api/list-groups/<id>               → { group }
    PUT  /api/list-groups/<id>               → partial update, returns { group }
    GET  /api/list-groups/<id>/cards         → cards selected by the group's filter
    GET  /health

Mutating routes need an X-API-Key header matching $LISTGROUPS_API_SECRET.
Without a configured secret they answer 503 and only the reads work.
"""

import asyncio
import hmac
import logging
import sqlite3
import sys
from functools import wraps

from flask import Flask, jsonify, request

from pkg.lists.cards import CardStore
from pkg.lists.config import Config
from pkg.lists.filters import FilterError, parse_where
from pkg.lists.schema import (
    FilterEntityTypes,
    ListGroup,
    ListGroupEntityTypes,
    ListGroupOptions,
    as_bool,
)
from pkg.lists.store import Database
from pkg.lists.synthesizer import ListGroupsService, NotFoundError

logger = logging.getLogger("list_server")

app = Flask(__name__)
app.config.setdefault("LISTGROUPS", Config.load())


def get_config() -> Config:
    return app.config["LISTGROUPS"]


# One Database per path, so the schema DDL runs once per configured DB
_databases = {}


def get_db() -> Database:
    db_path = get_config().db_path
    db = _databases.get(db_path)
    if db is None:
        db = _databases[db_path] = Database(db_path)
    return db


def get_service() -> ListGroupsService:
    return ListGroupsService.from_db(get_db())


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """
    Decorator: reject requests without a valid X-API-Key header.

    With no secret configured the mutating routes are closed (503) and the
    server is read-only.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = get_config().api_secret
        if not secret:
            return jsonify({"error": "API secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Errors ───────────────────────────────────────────────────────────────────


@app.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({"error": str(e)}), 404


@app.errorhandler(FilterError)
def handle_bad_filter(e):
    return jsonify({"error": str(e)}), 400


def _parse_group_by(value):
    try:
        return ListGroupOptions.from_str(value), None
    except ValueError as e:
        return None, (jsonify({"error": str(e)}), 400)


def _parse_int(value, name):
    try:
        return int(value), None
    except (TypeError, ValueError):
        return None, (jsonify({"error": f"{name} must be an integer"}), 400)


# ── Routes ───────────────────────────────────────────────────────────────────


@app.route("/api/list-groups", methods=["GET"])
def api_list_groups():
    list_id, err = _parse_int(request.args.get("listId"), "listId")
    if err:
        return err
    group_by = None
    if request.args.get("groupBy"):
        group_by, err = _parse_group_by(request.args["groupBy"])
        if err:
            return err
    groups = asyncio.run(get_service().find_all(list_id, group_by))
    return jsonify({"groups": [g.to_dict() for g in groups], "count": len(groups)})


@app.route("/api/list-groups", methods=["POST"])
@require_api_key
def api_create_group():
    """Create a single group by hand."""
    data = request.get_json(force=True, silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify({"error": "name is required"}), 400
    list_id, err = _parse_int(data.get("listId"), "listId")
    if err:
        return err
    group_by, err = _parse_group_by(data.get("type"))
    if err:
        return err
    entity_type = None
    if data.get("entityType"):
        try:
            entity_type = ListGroupEntityTypes(data["entityType"])
        except ValueError:
            return jsonify({"error": f"Invalid entityType: {data['entityType']}"}), 400
    try:
        is_expanded = as_bool(data.get("isExpanded", False), "isExpanded")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    group = ListGroup(
        id=None,
        list_id=list_id,
        type=group_by,
        name=name,
        color=data.get("color"),
        icon=data.get("icon"),
        order=data.get("order"),
        is_expanded=is_expanded,
        entity_id=data.get("entityId"),
        entity_type=entity_type,
    )
    raw = data.get("filter")
    where = parse_where(raw.get("where", raw) if isinstance(raw, dict) else raw) if raw else None

    service = get_service()
    try:
        group = asyncio.run(service.create(group))
    except sqlite3.IntegrityError as e:
        logger.warning(f"create group failed: {e}")
        return jsonify({"error": str(e)}), 409
    if where is not None:
        group.filter = service.filters.create(group.id, FilterEntityTypes.LIST_GROUP, where)
    return jsonify({"group": group.to_dict(), "id": group.id}), 201


@app.route("/api/list-groups/generate", methods=["POST"])
@require_api_key
def api_generate_groups():
    data = request.get_json(force=True, silent=True) or {}
    list_id, err = _parse_int(data.get("listId"), "listId")
    if err:
        return err
    group_by, err = _parse_group_by(data.get("groupBy"))
    if err:
        return err
    try:
        ignore_completed = as_bool(data.get("ignoreCompleted", False), "ignoreCompleted")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not get_db().list_exists(list_id):
        return jsonify({"error": f"List with ID {list_id} not found"}), 404

    groups = asyncio.run(get_service().generate_groups(
        list_id,
        ignore_completed=ignore_completed,
        group_by=group_by,
    ))
    return jsonify({"groups": [g.to_dict() for g in groups], "count": len(groups)})


@app.route("/api/list-groups/<int:group_id>", methods=["GET"])
def api_get_group(group_id):
    group = asyncio.run(get_service().find_one(group_id))
    return jsonify({"group": group.to_dict()})


@app.route("/api/list-groups/<int:group_id>", methods=["PUT"])
@require_api_key
def api_update_group(group_id):
    data = request.get_json(force=True, silent=True) or {}
    try:
        group = asyncio.run(get_service().update(group_id, data))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except sqlite3.IntegrityError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"group": group.to_dict()})


@app.route("/api/list-groups/<int:group_id>/cards", methods=["GET"])
def api_group_cards(group_id):
    db = get_db()
    group = asyncio.run(ListGroupsService.from_db(db).find_one(group_id))
    cards = CardStore(db).find_for_group(group)
    return jsonify({"cards": [c.to_dict() for c in cards], "count": len(cards)})


@app.route("/health")
def health():
    return jsonify({"status": "ok", "db": get_config().db_path})


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="List Groups Server")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to the SQLite DB (overrides LISTGROUPS_DB)")
    args = parser.parse_args()

    cfg = Config.load(args.config)
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port
    if args.db:
        cfg.db_path = args.db
    app.config["LISTGROUPS"] = cfg

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger.info(f"Serving list groups on http://{cfg.host}:{cfg.port} (db: {cfg.db_path})")

    app.run(host=cfg.host, port=cfg.port, debug=False, threaded=True)
