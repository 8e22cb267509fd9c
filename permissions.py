"""
Role rules for workspaces, projects, tasks and comments.

Pure predicates over already-loaded documents. Membership entries are
`{"user_id": ..., "role": ...}` dicts kept in insertion order on the parent.
"""

from typing import Optional


def find_member(entity: dict, user_id: str) -> Optional[dict]:
    return next((m for m in entity.get("members", []) if m.get("user_id") == user_id), None)


def has_role(entity: dict, user_id: str, role: str) -> bool:
    member = find_member(entity, user_id)
    return member is not None and member.get("role") == role


def is_workspace_member(workspace: dict, user_id: str) -> bool:
    return find_member(workspace, user_id) is not None


def is_workspace_admin(workspace: dict, user_id: str) -> bool:
    return has_role(workspace, user_id, "admin")


def is_project_member(project: dict, user_id: str) -> bool:
    return find_member(project, user_id) is not None


def is_project_lead(project: dict, user_id: str) -> bool:
    return has_role(project, user_id, "lead")


def can_delete_workspace(workspace: dict, user_id: str) -> bool:
    # owner only; admins who are not the owner cannot delete
    return workspace.get("owner_id") == user_id


def can_modify_project(project: dict, workspace: Optional[dict], user_id: str) -> bool:
    if is_project_lead(project, user_id):
        return True
    return workspace is not None and is_workspace_admin(workspace, user_id)


def can_delete_task(project: dict, task: dict, user_id: str) -> bool:
    if not is_project_member(project, user_id):
        return False
    return is_project_lead(project, user_id) or task.get("created_by") == user_id


def can_delete_comment(task: dict, comment: dict, project: Optional[dict], user_id: str) -> bool:
    if comment.get("user_id") == user_id:
        return True
    return project is not None and is_project_lead(project, user_id)


def would_orphan_project_leads(project: dict, removed_user_id: str) -> bool:
    """True when removing the user would leave the project without a lead."""
    if not is_project_lead(project, removed_user_id):
        return False
    leads = [m for m in project.get("members", []) if m.get("role") == "lead"]
    return len(leads) == 1
