import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from activity import record_activity
from auth import get_current_user
from database import NAME_ONLY, RECENTLY_UPDATED, USER_SUMMARY, Repositories, get_repositories, serialize
from errors import Conflict, Forbidden, NotFound, ValidationFailed
from permissions import (
    can_modify_project,
    find_member,
    is_project_member,
    is_workspace_member,
    would_orphan_project_leads,
)
from schemas import Project, ProjectCreate, ProjectMember, ProjectMemberAdd, ProjectUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _load_for_modification(repos: Repositories, user_id: str, project_id: str, denial: str):
    """Load a project and its workspace, requiring a lead or a workspace admin."""
    project = repos.projects.get(project_id)
    workspace: Optional[dict] = repos.workspaces.find_by_id(project["workspace_id"])
    if not can_modify_project(project, workspace, user_id):
        raise Forbidden(denial)
    return project, workspace


def create_project(repos: Repositories, user_id: str, payload: ProjectCreate) -> dict:
    workspace = repos.workspaces.get(payload.workspace_id)
    if not is_workspace_member(workspace, user_id):
        raise Forbidden("Access denied to this workspace")

    project = Project(
        name=payload.name,
        description=payload.description,
        workspace_id=payload.workspace_id,
        owner_id=user_id,
        members=[ProjectMember(user_id=user_id, role="lead")],
        status=payload.status or "planning",
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    doc = repos.projects.create(project)
    record_activity(
        repos.activities, user_id, "created", "project", doc["_id"], workspace_id=payload.workspace_id,
    )
    return doc


def list_projects(repos: Repositories, user_id: str) -> List[dict]:
    return repos.projects.find_many({"members.user_id": user_id}, sort=RECENTLY_UPDATED)


def list_workspace_projects(repos: Repositories, user_id: str, workspace_id: str) -> List[dict]:
    workspace = repos.workspaces.get(workspace_id)
    if not is_workspace_member(workspace, user_id):
        raise Forbidden("Access denied to this workspace")
    return repos.projects.find_many({"workspace_id": workspace_id}, sort=RECENTLY_UPDATED)


def get_project(repos: Repositories, user_id: str, project_id: str) -> dict:
    project = repos.projects.get(project_id)
    if not is_project_member(project, user_id):
        raise Forbidden("Access denied to this project")
    return project


def update_project(repos: Repositories, user_id: str, project_id: str, payload: ProjectUpdate) -> dict:
    project, _ = _load_for_modification(repos, user_id, project_id, "Not authorized to update project")

    # description may be cleared; the other fields ignore empty values
    if payload.name:
        project["name"] = payload.name
    if "description" in payload.model_fields_set:
        project["description"] = payload.description
    if payload.status:
        project["status"] = payload.status
    if payload.start_date:
        project["start_date"] = payload.start_date
    if payload.end_date:
        project["end_date"] = payload.end_date

    repos.projects.save(project)
    record_activity(
        repos.activities, user_id, "updated", "project", project_id, workspace_id=project["workspace_id"],
    )
    return project


def delete_project(repos: Repositories, user_id: str, project_id: str) -> None:
    project, _ = _load_for_modification(repos, user_id, project_id, "Not authorized to delete project")

    removed_tasks = repos.tasks.delete_many({"project_id": project_id})
    repos.projects.delete(project["_id"])
    logger.info(
        f"Project {project_id} deleted with {removed_tasks} tasks",
        extra={"user_id": user_id, "entity_type": "project", "entity_id": project_id},
    )
    record_activity(
        repos.activities, user_id, "deleted", "project", project_id, workspace_id=project["workspace_id"],
    )


def add_project_member(repos: Repositories, user_id: str, project_id: str, payload: ProjectMemberAdd) -> dict:
    project, workspace = _load_for_modification(repos, user_id, project_id, "Not authorized to add members")

    if workspace is None or not is_workspace_member(workspace, payload.user_id):
        raise ValidationFailed("User must be a workspace member first")
    if is_project_member(project, payload.user_id):
        raise Conflict("User is already a member of this project")

    project["members"].append(ProjectMember(user_id=payload.user_id, role=payload.role).model_dump())
    repos.projects.save(project)
    record_activity(
        repos.activities, user_id, "added_member", "project", project_id,
        workspace_id=project["workspace_id"], affected_user=payload.user_id, details={"role": payload.role},
    )
    return project


def remove_project_member(repos: Repositories, user_id: str, project_id: str, member_id: str) -> dict:
    project, _ = _load_for_modification(repos, user_id, project_id, "Not authorized to remove members")

    if would_orphan_project_leads(project, member_id):
        raise Conflict("Cannot remove the only project lead")
    if find_member(project, member_id) is None:
        raise NotFound("Member not found")

    project["members"] = [m for m in project["members"] if m.get("user_id") != member_id]
    repos.projects.save(project)
    record_activity(
        repos.activities, user_id, "removed_member", "project", project_id,
        workspace_id=project["workspace_id"], affected_user=member_id,
    )
    return project


def expand_project(repos: Repositories, project: dict) -> dict:
    """Serialize a project with its workspace name and member user summaries."""
    members = project.get("members", [])
    people = repos.users.summaries([m.get("user_id") for m in members], USER_SUMMARY)
    workspaces = repos.workspaces.summaries([project.get("workspace_id")], NAME_ONLY)

    out = serialize(project)
    out["workspace"] = workspaces.get(project.get("workspace_id"))
    out["members"] = [dict(m, user=people.get(m.get("user_id"))) for m in members]
    return out


@router.post("")
def create(payload: ProjectCreate, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    return serialize(create_project(repos, user["id"], payload))


@router.get("")
def list_mine(user: dict = Depends(get_current_user), repos: Repositories = Depends(get_repositories)):
    return [serialize(p) for p in list_projects(repos, user["id"])]


@router.get("/workspace/{workspace_id}")
def list_by_workspace(workspace_id: str, user: dict = Depends(get_current_user),
                      repos: Repositories = Depends(get_repositories)):
    return [serialize(p) for p in list_workspace_projects(repos, user["id"], workspace_id)]


@router.get("/{project_id}")
def get_one(project_id: str, user: dict = Depends(get_current_user),
            repos: Repositories = Depends(get_repositories)):
    return expand_project(repos, get_project(repos, user["id"], project_id))


@router.put("/{project_id}")
def update(project_id: str, payload: ProjectUpdate, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    return serialize(update_project(repos, user["id"], project_id, payload))


@router.delete("/{project_id}")
def delete(project_id: str, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    delete_project(repos, user["id"], project_id)
    return {"message": "Project deleted"}


@router.post("/{project_id}/members")
def add_member(project_id: str, payload: ProjectMemberAdd, user: dict = Depends(get_current_user),
               repos: Repositories = Depends(get_repositories)):
    return serialize(add_project_member(repos, user["id"], project_id, payload))


@router.delete("/{project_id}/members/{member_id}")
def remove_member(project_id: str, member_id: str, user: dict = Depends(get_current_user),
                  repos: Repositories = Depends(get_repositories)):
    return serialize(remove_project_member(repos, user["id"], project_id, member_id))
