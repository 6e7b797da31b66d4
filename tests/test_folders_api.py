"""Tests for folder CRUD, counts, move and tree endpoints."""

import pytest
from sqlalchemy.exc import IntegrityError

from omnivault.models import Folder
from omnivault.repositories.folder_repository import FolderRepository
from tests.conftest import make_text


def _create(client, headers, name, parent_id=None, **extra):
    resp = client.post("/api/folders", headers=headers, json={"name": name, "parent_id": parent_id, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestFolderCrud:

    def test_create_and_get(self, client, auth_headers):
        folder = _create(client, auth_headers, "Projects", description="Work stuff")
        resp = client.get(f"/api/folders/{folder['id']}", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Projects"
        assert data["description"] == "Work stuff"
        assert data["parent_id"] is None

    def test_name_is_trimmed_and_required(self, client, auth_headers):
        assert _create(client, auth_headers, "  Padded  ")["name"] == "Padded"
        resp = client.post("/api/folders", headers=auth_headers, json={"name": "   "})
        assert resp.status_code == 400
        assert "name" in resp.json()["errors"]

    def test_duplicate_sibling_name_conflicts(self, client, auth_headers):
        _create(client, auth_headers, "Docs")
        resp = client.post("/api/folders", headers=auth_headers, json={"name": "Docs"})
        assert resp.status_code == 409

    def test_same_name_under_different_parents_is_allowed(self, client, auth_headers):
        root = _create(client, auth_headers, "Docs")
        other = _create(client, auth_headers, "Archive")
        _create(client, auth_headers, "Docs", parent_id=root["id"])
        _create(client, auth_headers, "Docs", parent_id=other["id"])

    def test_names_are_case_sensitive(self, client, auth_headers):
        _create(client, auth_headers, "docs")
        _create(client, auth_headers, "Docs")

    def test_duplicate_root_names_blocked_by_database(self, db, user):
        db.add(Folder(name="Docs", user_id=user.id))
        db.commit()
        db.add(Folder(name="Docs", user_id=user.id))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_racing_root_creates_conflict(self, client, auth_headers, monkeypatch):
        # Both requests pass the sibling lookup before either inserts.
        monkeypatch.setattr(FolderRepository, "find_sibling", lambda self, *args, **kwargs: None)
        _create(client, auth_headers, "Docs")
        resp = client.post("/api/folders", headers=auth_headers, json={"name": "Docs"})
        assert resp.status_code == 409
        assert [f["name"] for f in client.get("/api/folders", headers=auth_headers).json()] == ["Docs"]

    def test_unknown_parent(self, client, auth_headers):
        resp = client.post("/api/folders", headers=auth_headers, json={"name": "X", "parent_id": "missing"})
        assert resp.status_code == 404

    def test_rename_into_existing_sibling_conflicts(self, client, auth_headers):
        _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B")
        resp = client.put(f"/api/folders/{b['id']}", headers=auth_headers, json={"name": "A"})
        assert resp.status_code == 409

    def test_update_description(self, client, auth_headers):
        folder = _create(client, auth_headers, "A")
        resp = client.put(f"/api/folders/{folder['id']}", headers=auth_headers, json={"description": "new"})
        assert resp.status_code == 200
        assert resp.json()["description"] == "new"
        assert resp.json()["name"] == "A"

    def test_delete_cascades(self, client, auth_headers, db):
        parent = _create(client, auth_headers, "Parent")
        child = _create(client, auth_headers, "Child", parent_id=parent["id"])
        note = client.post(
            "/api/contents/text", headers=auth_headers, json=make_text(folder_id=child["id"])
        ).json()

        assert client.delete(f"/api/folders/{parent['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/api/folders/{child['id']}", headers=auth_headers).status_code == 404
        assert client.get(f"/api/contents/{note['id']}", headers=auth_headers).status_code == 404


class TestCounts:

    def test_direct_counts_only(self, client, auth_headers):
        folder = _create(client, auth_headers, "Work")
        for i in range(3):
            client.post("/api/contents/text", headers=auth_headers, json=make_text(f"Note {i}", folder_id=folder["id"]))
        sub_a = _create(client, auth_headers, "A", parent_id=folder["id"])
        _create(client, auth_headers, "B", parent_id=folder["id"])
        # Grandchildren are not counted.
        _create(client, auth_headers, "Deep", parent_id=sub_a["id"])
        client.post("/api/contents/text", headers=auth_headers, json=make_text("Deep note", folder_id=sub_a["id"]))

        data = client.get(f"/api/folders/{folder['id']}", headers=auth_headers).json()
        assert data["content_count"] == 3
        assert data["subfolder_count"] == 2

        roots = client.get("/api/folders", headers=auth_headers).json()
        assert [(f["name"], f["content_count"], f["subfolder_count"]) for f in roots] == [("Work", 3, 2)]

    def test_children_listing(self, client, auth_headers):
        parent = _create(client, auth_headers, "Parent")
        _create(client, auth_headers, "Zeta", parent_id=parent["id"])
        _create(client, auth_headers, "Alpha", parent_id=parent["id"])
        resp = client.get(f"/api/folders/{parent['id']}/children", headers=auth_headers)
        assert [f["name"] for f in resp.json()] == ["Alpha", "Zeta"]


class TestMove:

    def test_move_under_new_parent(self, client, auth_headers):
        a = _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B")
        resp = client.put(f"/api/folders/{b['id']}/move", headers=auth_headers, json={"parent_id": a["id"]})
        assert resp.status_code == 200
        assert resp.json()["parent_id"] == a["id"]

    def test_move_to_root(self, client, auth_headers):
        a = _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B", parent_id=a["id"])
        resp = client.put(f"/api/folders/{b['id']}/move", headers=auth_headers, json={"parent_id": None})
        assert resp.json()["parent_id"] is None

    def test_cannot_move_into_itself_or_descendant(self, client, auth_headers):
        a = _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B", parent_id=a["id"])
        c = _create(client, auth_headers, "C", parent_id=b["id"])

        for target in (a, c):
            resp = client.put(f"/api/folders/{a['id']}/move", headers=auth_headers, json={"parent_id": target["id"]})
            assert resp.status_code == 400
            assert "parent_id" in resp.json()["errors"]

    def test_parent_id_is_required(self, client, auth_headers):
        a = _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B", parent_id=a["id"])
        resp = client.put(f"/api/folders/{b['id']}/move", headers=auth_headers, json={})
        assert resp.status_code == 400
        assert "parent_id" in resp.json()["errors"]
        assert client.get(f"/api/folders/{b['id']}", headers=auth_headers).json()["parent_id"] == a["id"]

    def test_move_into_duplicate_name_conflicts(self, client, auth_headers):
        a = _create(client, auth_headers, "A")
        _create(client, auth_headers, "Docs", parent_id=a["id"])
        docs = _create(client, auth_headers, "Docs")
        resp = client.put(f"/api/folders/{docs['id']}/move", headers=auth_headers, json={"parent_id": a["id"]})
        assert resp.status_code == 409


class TestTree:

    def test_nested_tree(self, client, auth_headers):
        a = _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B", parent_id=a["id"])
        _create(client, auth_headers, "C", parent_id=b["id"])
        _create(client, auth_headers, "Z")

        tree = client.get("/api/folders/tree", headers=auth_headers).json()
        assert [n["name"] for n in tree] == ["A", "Z"]
        assert tree[0]["children"][0]["name"] == "B"
        assert tree[0]["children"][0]["children"][0]["name"] == "C"
        assert tree[0]["subfolder_count"] == 1

    def test_subtree(self, client, auth_headers):
        a = _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B", parent_id=a["id"])
        _create(client, auth_headers, "C", parent_id=b["id"])

        node = client.get(f"/api/folders/{b['id']}/tree", headers=auth_headers).json()
        assert node["name"] == "B"
        assert [c["name"] for c in node["children"]] == ["C"]

    def test_cycle_is_rejected(self, client, auth_headers, db):
        a = _create(client, auth_headers, "A")
        b = _create(client, auth_headers, "B", parent_id=a["id"])
        # Corrupt the hierarchy behind the service's back.
        db.query(Folder).filter(Folder.id == a["id"]).update({"parent_id": b["id"]})
        db.commit()

        resp = client.get("/api/folders/tree", headers=auth_headers)
        assert resp.status_code == 409
        resp = client.get(f"/api/folders/{a['id']}/tree", headers=auth_headers)
        assert resp.status_code == 409

    def test_empty_tree(self, client, auth_headers):
        assert client.get("/api/folders/tree", headers=auth_headers).json() == []


class TestSearch:

    def test_search_is_case_insensitive(self, client, auth_headers):
        _create(client, auth_headers, "Finance")
        _create(client, auth_headers, "Recipes")
        resp = client.get("/api/folders/search", headers=auth_headers, params={"q": "fin"})
        assert [f["name"] for f in resp.json()] == ["Finance"]

    def test_wildcards_are_stripped(self, client, auth_headers):
        _create(client, auth_headers, "Finance")
        resp = client.get("/api/folders/search", headers=auth_headers, params={"q": "%_"})
        # Wildcards are stripped, leaving an empty term that matches everything.
        assert [f["name"] for f in resp.json()] == ["Finance"]

    def test_description_match(self, client, auth_headers):
        _create(client, auth_headers, "Taxes", description="Finance paperwork")
        _create(client, auth_headers, "Recipes")
        resp = client.get("/api/folders/search", headers=auth_headers, params={"q": "finance"})
        assert [f["name"] for f in resp.json()] == ["Taxes"]


class TestOwnerIsolation:

    def test_foreign_folder_looks_missing(self, client, auth_headers, other_headers):
        folder = _create(client, auth_headers, "Private")
        _create(client, auth_headers, "Child", parent_id=folder["id"])
        target = _create(client, other_headers, "Bob's")
        fid = folder["id"]

        missing = client.get("/api/folders/no-such-id", headers=other_headers)
        assert missing.status_code == 404

        responses = [
            client.get(f"/api/folders/{fid}", headers=other_headers),
            client.get(f"/api/folders/{fid}/children", headers=other_headers),
            client.get(f"/api/folders/{fid}/tree", headers=other_headers),
            client.put(f"/api/folders/{fid}", headers=other_headers, json={"name": "Stolen"}),
            client.put(f"/api/folders/{fid}/move", headers=other_headers, json={"parent_id": target["id"]}),
            client.delete(f"/api/folders/{fid}", headers=other_headers),
        ]
        for resp in responses:
            assert resp.status_code == 404
            assert resp.json()["message"] == missing.json()["message"]

        assert [f["name"] for f in client.get("/api/folders", headers=other_headers).json()] == ["Bob's"]
        assert client.get("/api/folders/search", headers=other_headers, params={"q": "Priv"}).json() == []
        assert client.get(f"/api/folders/{fid}", headers=auth_headers).json()["name"] == "Private"

    def test_cannot_nest_under_foreign_folder(self, client, auth_headers, other_headers):
        folder = _create(client, auth_headers, "Private")
        resp = client.post("/api/folders", headers=other_headers, json={"name": "Sneaky", "parent_id": folder["id"]})
        assert resp.status_code == 404
