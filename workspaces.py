import logging
from typing import List

from fastapi import APIRouter, Depends

from activity import record_activity
from auth import get_current_user
from database import NEWEST_FIRST, Repositories, get_repositories, serialize
from errors import Conflict, Forbidden, NotFound
from permissions import can_delete_workspace, find_member, is_workspace_admin, is_workspace_member
from schemas import (
    Workspace,
    WorkspaceCreate,
    WorkspaceMember,
    WorkspaceMemberAdd,
    WorkspaceUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workspaces", tags=["workspaces"])


def create_workspace(repos: Repositories, user_id: str, payload: WorkspaceCreate) -> dict:
    workspace = Workspace(
        name=payload.name,
        description=payload.description,
        owner_id=user_id,
        members=[WorkspaceMember(user_id=user_id, role="admin")],
    )
    doc = repos.workspaces.create(workspace)
    workspace_id = str(doc["_id"])
    record_activity(repos.activities, user_id, "created", "workspace", workspace_id, workspace_id=workspace_id)
    return doc


def list_workspaces(repos: Repositories, user_id: str) -> List[dict]:
    return repos.workspaces.find_many({"members.user_id": user_id}, sort=NEWEST_FIRST)


def get_workspace(repos: Repositories, user_id: str, workspace_id: str) -> dict:
    workspace = repos.workspaces.get(workspace_id)
    if not is_workspace_member(workspace, user_id):
        raise Forbidden("Access denied")
    return workspace


def update_workspace(repos: Repositories, user_id: str, workspace_id: str, payload: WorkspaceUpdate) -> dict:
    workspace = repos.workspaces.get(workspace_id)
    if not is_workspace_admin(workspace, user_id):
        raise Forbidden("Not authorized to update workspace")

    # empty values leave the stored ones untouched
    if payload.name:
        workspace["name"] = payload.name
    if payload.description:
        workspace["description"] = payload.description

    repos.workspaces.save(workspace)
    record_activity(repos.activities, user_id, "updated", "workspace", workspace_id, workspace_id=workspace_id)
    return workspace


def delete_workspace(repos: Repositories, user_id: str, workspace_id: str) -> None:
    workspace = repos.workspaces.get(workspace_id)
    if not can_delete_workspace(workspace, user_id):
        raise Forbidden("Not authorized to delete workspace")

    project_ids = [str(p["_id"]) for p in repos.projects.find_many({"workspace_id": workspace_id})]
    if project_ids:
        repos.tasks.delete_many({"project_id": {"$in": project_ids}})
        repos.projects.delete_many({"workspace_id": workspace_id})
    repos.workspaces.delete(workspace["_id"])
    logger.info(
        f"Workspace {workspace_id} deleted with {len(project_ids)} projects",
        extra={"user_id": user_id, "entity_type": "workspace", "entity_id": workspace_id},
    )
    record_activity(repos.activities, user_id, "deleted", "workspace", workspace_id)


def add_workspace_member(repos: Repositories, user_id: str, workspace_id: str, payload: WorkspaceMemberAdd) -> dict:
    workspace = repos.workspaces.get(workspace_id)
    if not is_workspace_admin(workspace, user_id):
        raise Forbidden("Not authorized to add members")
    repos.users.get(payload.user_id)
    if is_workspace_member(workspace, payload.user_id):
        raise Conflict("User is already a member of this workspace")

    workspace["members"].append(WorkspaceMember(user_id=payload.user_id, role=payload.role).model_dump())
    repos.workspaces.save(workspace)
    record_activity(
        repos.activities, user_id, "added_member", "workspace", workspace_id,
        workspace_id=workspace_id, affected_user=payload.user_id, details={"role": payload.role},
    )
    return workspace


def remove_workspace_member(repos: Repositories, user_id: str, workspace_id: str, member_id: str) -> dict:
    workspace = repos.workspaces.get(workspace_id)
    if not is_workspace_admin(workspace, user_id):
        raise Forbidden("Not authorized to remove members")
    if find_member(workspace, member_id) is None:
        raise NotFound("Member not found")

    workspace["members"] = [m for m in workspace["members"] if m.get("user_id") != member_id]
    repos.workspaces.save(workspace)
    record_activity(
        repos.activities, user_id, "removed_member", "workspace", workspace_id,
        workspace_id=workspace_id, affected_user=member_id,
    )
    return workspace


@router.post("")
def create(payload: WorkspaceCreate, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    return serialize(create_workspace(repos, user["id"], payload))


@router.get("")
def list_mine(user: dict = Depends(get_current_user), repos: Repositories = Depends(get_repositories)):
    return [serialize(w) for w in list_workspaces(repos, user["id"])]


@router.get("/{workspace_id}")
def get_one(workspace_id: str, user: dict = Depends(get_current_user),
            repos: Repositories = Depends(get_repositories)):
    return serialize(get_workspace(repos, user["id"], workspace_id))


@router.put("/{workspace_id}")
def update(workspace_id: str, payload: WorkspaceUpdate, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    return serialize(update_workspace(repos, user["id"], workspace_id, payload))


@router.delete("/{workspace_id}")
def delete(workspace_id: str, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    delete_workspace(repos, user["id"], workspace_id)
    return {"message": "Workspace deleted"}


@router.post("/{workspace_id}/members")
def add_member(workspace_id: str, payload: WorkspaceMemberAdd, user: dict = Depends(get_current_user),
               repos: Repositories = Depends(get_repositories)):
    return serialize(add_workspace_member(repos, user["id"], workspace_id, payload))


@router.delete("/{workspace_id}/members/{member_id}")
def remove_member(workspace_id: str, member_id: str, user: dict = Depends(get_current_user),
                  repos: Repositories = Depends(get_repositories)):
    return serialize(remove_workspace_member(repos, user["id"], workspace_id, member_id))
