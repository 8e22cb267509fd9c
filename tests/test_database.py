"""Tests for the repository layer and payload serialization."""

from datetime import datetime, timedelta, timezone

import pymongo.errors
import pytest
from bson import ObjectId

from database import NAME_ONLY, RECENTLY_UPDATED, USER_SUMMARY, ensure_indexes, serialize
from errors import NotFound
from schemas import Invitation


class TestRepository:
    def test_create_stamps_timestamps(self, repos):
        doc = repos.workspaces.create({"name": "Acme"})
        assert isinstance(doc["_id"], ObjectId)
        assert doc["created_at"] == doc["updated_at"]

    @pytest.mark.parametrize("doc_id", ["not-an-id", "", None, str(ObjectId())])
    def test_find_by_id_misses_resolve_to_none(self, repos, doc_id):
        assert repos.tasks.find_by_id(doc_id) is None

    def test_get_raises_labelled_not_found(self, repos):
        with pytest.raises(NotFound) as excinfo:
            repos.projects.get("bogus")
        assert excinfo.value.message == "Project not found"

    def test_save_touches_updated_at(self, repos, db):
        doc = repos.tasks.create({"title": "T"})
        long_ago = datetime(2020, 1, 1, tzinfo=timezone.utc)
        db["tasks"].update_one({"_id": doc["_id"]}, {"$set": {"updated_at": long_ago}})
        stored = repos.tasks.get(str(doc["_id"]))
        stored["title"] = "Renamed"
        repos.tasks.save(stored)
        reloaded = db["tasks"].find_one({"_id": doc["_id"]})
        assert reloaded["title"] == "Renamed"
        assert reloaded["updated_at"].year > 2020

    def test_find_many_sorts(self, repos, db):
        old = repos.tasks.create({"title": "old", "project_id": "p1"})
        new = repos.tasks.create({"title": "new", "project_id": "p1"})
        repos.tasks.create({"title": "elsewhere", "project_id": "p2"})
        db["tasks"].update_one({"_id": old["_id"]},
                               {"$set": {"updated_at": datetime(2020, 1, 1, tzinfo=timezone.utc)}})
        found = repos.tasks.find_many({"project_id": "p1"}, sort=RECENTLY_UPDATED)
        assert [d["title"] for d in found] == [new["title"], old["title"]]

    def test_delete_many_reports_count(self, repos):
        for _ in range(3):
            repos.tasks.create({"project_id": "p1"})
        assert repos.tasks.delete_many({"project_id": "p1"}) == 3
        assert repos.tasks.find_many({"project_id": "p1"}) == []


class TestSummaries:
    def test_returns_only_requested_fields(self, repos):
        ada = repos.users.create({"name": "Ada", "email": "ada@example.com", "password": "digest"})
        ada_id = str(ada["_id"])
        assert repos.users.summaries([ada_id, ada_id], USER_SUMMARY) == {
            ada_id: {"id": ada_id, "name": "Ada", "email": "ada@example.com"},
        }

    def test_skips_empty_malformed_and_unknown_ids(self, repos):
        ws = repos.workspaces.create({"name": "Acme"})
        ws_id = str(ws["_id"])
        found = repos.workspaces.summaries([None, "", "bogus", str(ObjectId()), ws_id], NAME_ONLY)
        assert found == {ws_id: {"id": ws_id, "name": "Acme"}}

    def test_nothing_to_look_up(self, repos):
        assert repos.users.summaries([None, None], USER_SUMMARY) == {}


class TestSerialize:
    def test_strips_password_and_stringifies_ids(self):
        oid = ObjectId()
        out = serialize({"_id": oid, "name": "Ada", "password": "digest", "owner": oid})
        assert out == {"id": str(oid), "name": "Ada", "owner": str(oid)}

    def test_passes_empty_through(self):
        assert serialize(None) is None


class TestInvitations:
    def _invitation(self, **overrides):
        fields = dict(
            email="Bob@Example.COM", token="tok-1", invited_by="u1", entity_type="workspace",
            entity_id="w1", role="member", expires_at=datetime.now(timezone.utc) + timedelta(days=7),
        )
        fields.update(overrides)
        return Invitation(**fields)

    def test_email_lowercased_and_pending(self):
        invitation = self._invitation()
        assert invitation.email == "bob@example.com"
        assert invitation.status == "pending"

    def test_token_is_unique(self, repos, db):
        ensure_indexes(db)
        repos.invitations.create(self._invitation())
        with pytest.raises(pymongo.errors.DuplicateKeyError):
            repos.invitations.create(self._invitation(email="carol@example.com"))
