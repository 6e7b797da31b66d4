"""Tests for tag CRUD and lenient tag resolution."""

import pytest

from omnivault.exceptions import ValidationError
from omnivault.services.tag_service import TagService
from tests.conftest import make_text


def _create(client, headers, name, color=None):
    payload = {"name": name}
    if color:
        payload["color"] = color
    resp = client.post("/api/tags", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestTagCrud:

    def test_create_with_default_color(self, client, auth_headers):
        tag = _create(client, auth_headers, "finance")
        assert tag["color"] == "#808080"
        assert tag["content_count"] == 0

    def test_create_with_color(self, client, auth_headers):
        assert _create(client, auth_headers, "urgent", "#FF0000")["color"] == "#FF0000"

    def test_invalid_color(self, client, auth_headers):
        resp = client.post("/api/tags", headers=auth_headers, json={"name": "x", "color": "red"})
        assert resp.status_code == 400
        assert "color" in resp.json()["errors"]

    def test_duplicate_name_conflicts(self, client, auth_headers):
        _create(client, auth_headers, "finance")
        resp = client.post("/api/tags", headers=auth_headers, json={"name": "finance"})
        assert resp.status_code == 409

    def test_same_name_for_different_users(self, client, auth_headers, other_headers):
        _create(client, auth_headers, "finance")
        _create(client, other_headers, "finance")

    def test_list_is_sorted_with_counts(self, client, auth_headers):
        _create(client, auth_headers, "zeta")
        client.post("/api/contents/text", headers=auth_headers, json=make_text(tag_names=["alpha"]))

        tags = client.get("/api/tags", headers=auth_headers).json()
        assert [(t["name"], t["content_count"]) for t in tags] == [("alpha", 1), ("zeta", 0)]

    def test_update(self, client, auth_headers):
        tag = _create(client, auth_headers, "old")
        resp = client.put(f"/api/tags/{tag['id']}", headers=auth_headers, json={"name": "new", "color": "#00FF00"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "new"
        assert resp.json()["color"] == "#00FF00"

    def test_rename_into_existing_conflicts(self, client, auth_headers):
        _create(client, auth_headers, "a")
        b = _create(client, auth_headers, "b")
        resp = client.put(f"/api/tags/{b['id']}", headers=auth_headers, json={"name": "a"})
        assert resp.status_code == 409

    def test_delete_keeps_contents(self, client, auth_headers):
        note = client.post("/api/contents/text", headers=auth_headers, json=make_text(tag_names=["temp"])).json()
        tag_id = note["tags"][0]["id"]

        assert client.delete(f"/api/tags/{tag_id}", headers=auth_headers).status_code == 204
        resp = client.get(f"/api/contents/{note['id']}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["tags"] == []

    def test_search(self, client, auth_headers):
        _create(client, auth_headers, "Finance")
        _create(client, auth_headers, "travel")
        resp = client.get("/api/tags/search", headers=auth_headers, params={"q": "FIN"})
        assert [t["name"] for t in resp.json()] == ["Finance"]

    def test_foreign_tag_is_not_found(self, client, auth_headers, other_headers):
        tag = _create(client, other_headers, "private")
        assert client.get(f"/api/tags/{tag['id']}", headers=auth_headers).status_code == 404
        assert client.delete(f"/api/tags/{tag['id']}", headers=auth_headers).status_code == 404


class TestResolution:

    def test_resolution_drops_unknown_and_foreign(self, db, user, other_user):
        service = TagService(db)
        mine = service.create_tag(user.id, "mine")
        theirs = service.create_tag(other_user.id, "theirs")

        by_id = service.resolve_tags_by_ids(user.id, [mine.id, theirs.id, "missing"])
        assert [t.name for t in by_id] == ["mine"]

        by_name = service.resolve_tags_by_names(user.id, ["mine", "theirs", " ", "missing"])
        assert [t.name for t in by_name] == ["mine"]

    def test_find_or_create(self, db, user):
        service = TagService(db)
        service.create_tag(user.id, "existing")

        tags = service.find_or_create_tags(user.id, ["new", "existing", " new "])
        db.commit()
        assert [t.name for t in tags] == ["existing", "new"]
        assert [t.name for t in service.list_tags(user.id)] == ["existing", "new"]

    def test_find_or_create_rejects_overlong_names(self, db, user):
        service = TagService(db)
        with pytest.raises(ValidationError) as exc:
            service.find_or_create_tags(user.id, ["ok", "z" * 51])
        assert exc.value.field == "tag_names"
        assert service.list_tags(user.id) == []
