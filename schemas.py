"""
Database Schemas for Workhub

Each persisted model maps to a MongoDB collection:
- User -> "users"
- Workspace -> "workspaces"
- Project -> "projects"
- Task -> "tasks"
- Activity -> "activities"
- Invitation -> "invitations"

References between documents are stored as string ids. Request bodies live
at the bottom of the module.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, EmailStr, Field, field_validator

WorkspaceRole = Literal["admin", "member"]
ProjectRole = Literal["lead", "member"]

ActivityAction = Literal[
    "created", "updated", "deleted", "moved", "assigned", "commented", "attached",
    "added_member", "removed_member",
]
ActivityEntity = Literal["workspace", "project", "task", "comment"]

InvitationEntity = Literal["workspace", "project"]
InvitationStatus = Literal["pending", "accepted", "declined", "expired"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Users
class User(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., description="bcrypt digest, never returned by the API")


# Workspaces
class WorkspaceMember(BaseModel):
    user_id: str
    role: WorkspaceRole = "member"


class Workspace(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    owner_id: str
    members: List[WorkspaceMember] = []


# Projects
class ProjectMember(BaseModel):
    user_id: str
    role: ProjectRole = "member"


class Project(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    workspace_id: str
    owner_id: str
    members: List[ProjectMember] = []
    status: str = "planning"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


# Tasks and comments
class Comment(BaseModel):
    id: str = Field(default_factory=lambda: str(ObjectId()))
    user_id: str
    text: str = Field(..., min_length=1, max_length=5000)
    created_at: datetime = Field(default_factory=utcnow)


def unique_labels(labels: List[str]) -> List[str]:
    return list(dict.fromkeys(labels))


class Task(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    project_id: str
    assigned_to: Optional[str] = None
    created_by: str
    status: str = "todo"
    priority: str = "medium"
    due_date: Optional[datetime] = None
    labels: List[str] = []
    comments: List[Comment] = []

    @field_validator("labels")
    @classmethod
    def dedupe_labels(cls, v: List[str]) -> List[str]:
        return unique_labels(v)


# Audit trail
class Activity(BaseModel):
    user_id: str
    action: ActivityAction
    entity_type: ActivityEntity
    entity_id: str
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    affected_user: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=utcnow)


class Invitation(BaseModel):
    email: EmailStr
    token: str
    invited_by: str
    entity_type: InvitationEntity
    entity_id: str
    role: str
    status: InvitationStatus = "pending"
    expires_at: datetime

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.strip().lower()


# Request bodies
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)


class WorkspaceMemberAdd(BaseModel):
    user_id: str
    role: WorkspaceRole = "member"


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    workspace_id: str
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectMemberAdd(BaseModel):
    user_id: str
    role: ProjectRole = "member"


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    project_id: str
    assigned_to: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    labels: Optional[List[str]] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    assigned_to: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    labels: Optional[List[str]] = None


class CommentCreate(BaseModel):
    text: Optional[str] = Field(None, max_length=5000)
