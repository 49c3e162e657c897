"""Shared fixtures for list group tests."""

import sys
from pathlib import Path

import pytest

# Ensure the repo root (pkg/, list_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.lists.stages import ListStagesService  # noqa: E402
from pkg.lists.store import Database  # noqa: E402
from pkg.lists.synthesizer import ListGroupsService  # noqa: E402
from pkg.lists.users import UsersService  # noqa: E402


@pytest.fixture
def db(tmp_path):
    return Database(str(tmp_path / "listgroups.db"))


@pytest.fixture
def board(db):
    """
    One project with a single list inside workspace -> space, three stages
    (Done is completed) and two members. A third user is outside the project.
    """
    project_id = db.create_project("Apollo")
    workspace_id = db.create_workspace(project_id, "Engineering")
    space_id = db.create_space(workspace_id, "Platform")
    list_id = db.create_list("Sprint 12", space_id)

    stages = ListStagesService(db)
    todo = stages.create(list_id, "Todo", color="grey", order=1)
    doing = stages.create(list_id, "Doing", color="blue", order=2)
    done = stages.create(list_id, "Done", color="green", order=3, is_completed=True)

    users = UsersService(db)
    ada = users.create("Ada", "Lovelace", photo="ada.png")
    alan = users.create("Alan", "Turing")
    outsider = users.create("Grace", "Hopper")
    users.add_to_project(ada.id, project_id)
    users.add_to_project(alan.id, project_id)

    return {
        "db": db,
        "project_id": project_id,
        "list_id": list_id,
        "stages": {"Todo": todo, "Doing": doing, "Done": done},
        "users": {"ada": ada, "alan": alan, "outsider": outsider},
    }


@pytest.fixture
def service(db):
    return ListGroupsService.from_db(db)
