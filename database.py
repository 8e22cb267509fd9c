"""
MongoDB access: connection helpers and one repository per collection.

Repositories hand out plain dicts as stored in Mongo. `serialize` turns them
into API payloads (string `id`, no password digest).
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from errors import NotFound
from schemas import utcnow

SortSpec = Sequence[Tuple[str, int]]


def connect(uri: str, database_name: str) -> Database:
    client = MongoClient(uri, tz_aware=True)
    return client[database_name]


def get_db(request: Request) -> Database:
    return request.app.state.db


def create_document(collection: Collection, data: Union[BaseModel, dict]) -> dict:
    """Insert a document stamped with created_at/updated_at and return it with its _id."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    else:
        data = dict(data)
    now = utcnow()
    data["created_at"] = now
    data["updated_at"] = now
    result = collection.insert_one(data)
    data["_id"] = result.inserted_id
    return data


def get_documents(collection: Collection, filter_dict: Optional[dict] = None,
                  sort: Optional[SortSpec] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = collection.find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = {k: v for k, v in doc.items() if k != "password"}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


class Repository:
    """create / find_by_id / find_many / save / delete over one collection."""

    def __init__(self, collection: Collection, label: str):
        self.collection = collection
        self.label = label

    def create(self, data: Union[BaseModel, dict]) -> dict:
        return create_document(self.collection, data)

    def find_by_id(self, doc_id: str) -> Optional[dict]:
        # malformed ids resolve to nothing, the same as unknown ones
        try:
            oid = ObjectId(doc_id)
        except (InvalidId, TypeError):
            return None
        return self.collection.find_one({"_id": oid})

    def get(self, doc_id: str) -> dict:
        doc = self.find_by_id(doc_id)
        if doc is None:
            raise NotFound(f"{self.label} not found")
        return doc

    def find_one(self, filter_dict: dict) -> Optional[dict]:
        return self.collection.find_one(filter_dict)

    def find_many(self, filter_dict: Optional[dict] = None, sort: Optional[SortSpec] = None) -> List[dict]:
        return get_documents(self.collection, filter_dict, sort)

    def save(self, doc: dict) -> dict:
        doc["updated_at"] = utcnow()
        self.collection.replace_one({"_id": doc["_id"]}, doc)
        return doc

    def delete(self, doc_id: Union[str, ObjectId]) -> None:
        self.collection.delete_one({"_id": ObjectId(doc_id)})

    def delete_many(self, filter_dict: dict) -> int:
        return self.collection.delete_many(filter_dict).deleted_count

    def summaries(self, doc_ids: Iterable[Optional[str]], fields: Sequence[str]) -> Dict[str, dict]:
        """Map each known id to `{"id", *fields}` with one `$in` query.

        Empty, malformed and unknown ids are simply absent from the result.
        """
        oids = set()
        for doc_id in doc_ids:
            if not doc_id:
                continue
            try:
                oids.add(ObjectId(doc_id))
            except (InvalidId, TypeError):
                continue
        if not oids:
            return {}
        cursor = self.collection.find({"_id": {"$in": list(oids)}}, {field: 1 for field in fields})
        return {
            str(doc["_id"]): {"id": str(doc["_id"]), **{field: doc.get(field) for field in fields}}
            for doc in cursor
        }


NEWEST_FIRST: SortSpec = [("created_at", DESCENDING)]
RECENTLY_UPDATED: SortSpec = [("updated_at", DESCENDING)]

USER_SUMMARY = ("name", "email")
NAME_ONLY = ("name",)


@dataclass
class Repositories:
    users: Repository
    workspaces: Repository
    projects: Repository
    tasks: Repository
    activities: Repository
    invitations: Repository

    @classmethod
    def from_db(cls, db: Database) -> "Repositories":
        return cls(
            users=Repository(db["users"], "User"),
            workspaces=Repository(db["workspaces"], "Workspace"),
            projects=Repository(db["projects"], "Project"),
            tasks=Repository(db["tasks"], "Task"),
            activities=Repository(db["activities"], "Activity"),
            invitations=Repository(db["invitations"], "Invitation"),
        )


def get_repositories(request: Request) -> Repositories:
    return Repositories.from_db(get_db(request))


def ensure_indexes(db: Database) -> None:
    db["users"].create_index("email", unique=True)
    db["workspaces"].create_index("members.user_id")
    db["projects"].create_index("members.user_id")
    db["projects"].create_index("workspace_id")
    db["tasks"].create_index("project_id")
    db["tasks"].create_index("assigned_to")
    db["activities"].create_index([("workspace_id", ASCENDING), ("timestamp", DESCENDING)])
    db["activities"].create_index([("project_id", ASCENDING), ("timestamp", DESCENDING)])
    db["invitations"].create_index(
        [("email", ASCENDING), ("entity_type", ASCENDING), ("entity_id", ASCENDING)], unique=True
    )
    db["invitations"].create_index("token", unique=True)
