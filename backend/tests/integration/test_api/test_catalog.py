"""API tests for workflow templates, editor values and user lookups"""
from .conftest import as_user


def test_templates_are_not_workflow_ids(client):
    response = client.get("/api/v1/workflows/templates")
    assert response.status_code == 200
    assert response.json()["total"] == 3
    assert response.json()["items"][0]["id"] == "simple-approval"


def test_values(client):
    response = client.get("/api/v1/workflows/values/operators")
    assert response.status_code == 200
    assert response.json()["total"] == 16

    missing = client.get("/api/v1/workflows/values/colors")
    assert missing.status_code == 404
    assert missing.json()["error"]["kind"] == "NotFound"


def test_user_lookups(client):
    by_role = client.get("/api/v1/workflows/users/by-role/editor", headers=as_user("u-admin")).json()
    assert [u["id"] for u in by_role["items"]] == ["u-editor2", "u-editor"]

    by_department = client.get(
        "/api/v1/workflows/users/by-department/editorial",
        params={"role": "publisher"},
        headers=as_user("u-admin")
    ).json()
    assert [u["id"] for u in by_department["items"]] == ["u-publisher"]

    departments = client.get("/api/v1/workflows/departments", headers=as_user("u-admin")).json()
    assert "legal" in [d["value"] for d in departments["items"]]


def test_user_lookups_require_user(client):
    response = client.get("/api/v1/workflows/users/by-role/editor")
    assert response.status_code == 403
