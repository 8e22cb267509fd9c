import logging
from typing import List, Tuple

from fastapi import APIRouter, Depends

from activity import record_activity
from auth import get_current_user
from database import NAME_ONLY, RECENTLY_UPDATED, USER_SUMMARY, Repositories, get_repositories, serialize
from errors import Forbidden, NotFound, ValidationFailed
from permissions import can_delete_comment, can_delete_task, is_project_member
from schemas import Comment, CommentCreate, Task, TaskCreate, TaskUpdate, unique_labels

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

# fields replaced whenever they are sent, even as null
PRESENCE_FIELDS = ("description", "assigned_to", "due_date")
# fields replaced only by a non-empty value; labels replace whenever not null
TRUTHY_FIELDS = ("title", "status", "priority")


def _load_with_project(repos: Repositories, task_id: str) -> Tuple[dict, dict]:
    task = repos.tasks.get(task_id)
    project = repos.projects.get(task["project_id"])
    return task, project


def _require_member(project: dict, user_id: str, denial: str) -> None:
    if not is_project_member(project, user_id):
        raise Forbidden(denial)


def create_task(repos: Repositories, user_id: str, payload: TaskCreate) -> dict:
    project = repos.projects.get(payload.project_id)
    _require_member(project, user_id, "Access denied to this project")

    task = Task(
        title=payload.title,
        description=payload.description,
        project_id=payload.project_id,
        assigned_to=payload.assigned_to,
        created_by=user_id,
        status=payload.status or "todo",
        priority=payload.priority or "medium",
        due_date=payload.due_date,
        labels=payload.labels or [],
    )
    doc = repos.tasks.create(task)
    record_activity(repos.activities, user_id, "created", "task", doc["_id"], project_id=payload.project_id)
    return doc


def list_tasks(repos: Repositories, user_id: str) -> List[dict]:
    project_ids = [str(p["_id"]) for p in repos.projects.find_many({"members.user_id": user_id})]
    if not project_ids:
        return []
    return repos.tasks.find_many({"project_id": {"$in": project_ids}}, sort=RECENTLY_UPDATED)


def list_project_tasks(repos: Repositories, user_id: str, project_id: str) -> List[dict]:
    project = repos.projects.get(project_id)
    _require_member(project, user_id, "Access denied to this project")
    return repos.tasks.find_many({"project_id": project_id}, sort=RECENTLY_UPDATED)


def list_assigned_tasks(repos: Repositories, user_id: str) -> List[dict]:
    return repos.tasks.find_many({"assigned_to": user_id}, sort=RECENTLY_UPDATED)


def get_task(repos: Repositories, user_id: str, task_id: str) -> dict:
    task, project = _load_with_project(repos, task_id)
    _require_member(project, user_id, "Access denied to this task")
    return task


def update_task(repos: Repositories, user_id: str, task_id: str, payload: TaskUpdate) -> dict:
    task, project = _load_with_project(repos, task_id)
    _require_member(project, user_id, "Access denied to this task")

    sent = payload.model_fields_set
    for field in PRESENCE_FIELDS:
        if field in sent:
            task[field] = getattr(payload, field)
    for field in TRUTHY_FIELDS:
        value = getattr(payload, field)
        if value:
            task[field] = value
    if payload.labels is not None:
        task["labels"] = unique_labels(payload.labels)

    repos.tasks.save(task)
    record_activity(
        repos.activities, user_id, "updated", "task", task_id, project_id=task["project_id"],
        details={"fields": sorted(sent)},
    )
    return task


def delete_task(repos: Repositories, user_id: str, task_id: str) -> None:
    task, project = _load_with_project(repos, task_id)
    if not can_delete_task(project, task, user_id):
        raise Forbidden("Not authorized to delete this task")

    repos.tasks.delete(task["_id"])
    logger.info(
        f"Task {task_id} deleted",
        extra={"user_id": user_id, "entity_type": "task", "entity_id": task_id},
    )
    record_activity(repos.activities, user_id, "deleted", "task", task_id, project_id=task["project_id"])


def add_comment(repos: Repositories, user_id: str, task_id: str, payload: CommentCreate) -> List[dict]:
    if not payload.text:
        raise ValidationFailed("Comment text is required")

    task, project = _load_with_project(repos, task_id)
    _require_member(project, user_id, "Access denied to this task")

    comment = Comment(user_id=user_id, text=payload.text)
    task["comments"].insert(0, comment.model_dump())
    repos.tasks.save(task)
    record_activity(
        repos.activities, user_id, "commented", "task", task_id, project_id=task["project_id"],
        details={"comment_id": comment.id},
    )
    return task["comments"]


def delete_comment(repos: Repositories, user_id: str, task_id: str, comment_id: str) -> List[dict]:
    task = repos.tasks.get(task_id)
    comment = next((c for c in task["comments"] if c.get("id") == comment_id), None)
    if comment is None:
        raise NotFound("Comment not found")

    project = repos.projects.find_by_id(task["project_id"])
    if not can_delete_comment(task, comment, project, user_id):
        raise Forbidden("Not authorized to delete this comment")

    task["comments"] = [c for c in task["comments"] if c.get("id") != comment_id]
    repos.tasks.save(task)
    record_activity(
        repos.activities, user_id, "deleted", "comment", comment_id, project_id=task["project_id"],
        details={"task_id": task_id},
    )
    return task["comments"]


def expand_tasks(repos: Repositories, tasks: List[dict], comment_authors: bool = False) -> List[dict]:
    """Serialize tasks with project, assignee and creator summaries next to their ids."""
    user_ids = [t.get("assigned_to") for t in tasks] + [t.get("created_by") for t in tasks]
    if comment_authors:
        user_ids += [c.get("user_id") for t in tasks for c in t.get("comments", [])]
    people = repos.users.summaries(user_ids, USER_SUMMARY)
    projects = repos.projects.summaries([t.get("project_id") for t in tasks], NAME_ONLY)

    expanded = []
    for task in tasks:
        out = serialize(task)
        out["project"] = projects.get(task.get("project_id"))
        out["assignee"] = people.get(task.get("assigned_to"))
        out["creator"] = people.get(task.get("created_by"))
        if comment_authors:
            out["comments"] = [dict(c, user=people.get(c.get("user_id"))) for c in task.get("comments", [])]
        expanded.append(out)
    return expanded


@router.post("")
def create(payload: TaskCreate, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    return serialize(create_task(repos, user["id"], payload))


@router.get("")
def list_mine(user: dict = Depends(get_current_user), repos: Repositories = Depends(get_repositories)):
    return expand_tasks(repos, list_tasks(repos, user["id"]))


@router.get("/project/{project_id}")
def list_by_project(project_id: str, user: dict = Depends(get_current_user),
                    repos: Repositories = Depends(get_repositories)):
    return expand_tasks(repos, list_project_tasks(repos, user["id"], project_id))


@router.get("/assigned")
def list_assigned(user: dict = Depends(get_current_user), repos: Repositories = Depends(get_repositories)):
    return expand_tasks(repos, list_assigned_tasks(repos, user["id"]))


@router.get("/{task_id}")
def get_one(task_id: str, user: dict = Depends(get_current_user),
            repos: Repositories = Depends(get_repositories)):
    (task,) = expand_tasks(repos, [get_task(repos, user["id"], task_id)], comment_authors=True)
    return task


@router.put("/{task_id}")
def update(task_id: str, payload: TaskUpdate, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    return serialize(update_task(repos, user["id"], task_id, payload))


@router.delete("/{task_id}")
def delete(task_id: str, user: dict = Depends(get_current_user),
           repos: Repositories = Depends(get_repositories)):
    delete_task(repos, user["id"], task_id)
    return {"message": "Task deleted"}


@router.post("/{task_id}/comments")
def post_comment(task_id: str, payload: CommentCreate, user: dict = Depends(get_current_user),
                 repos: Repositories = Depends(get_repositories)):
    return add_comment(repos, user["id"], task_id, payload)


@router.delete("/{task_id}/comments/{comment_id}")
def remove_comment(task_id: str, comment_id: str, user: dict = Depends(get_current_user),
                   repos: Repositories = Depends(get_repositories)):
    return delete_comment(repos, user["id"], task_id, comment_id)
