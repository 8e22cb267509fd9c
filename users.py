import logging
from typing import List

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from database import Repositories, get_repositories, serialize
from errors import Conflict, InvalidCredentials
from schemas import LoginRequest, RegisterRequest, User
from security import hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def register_user(repos: Repositories, payload: RegisterRequest) -> dict:
    if repos.users.find_one({"email": payload.email}):
        raise Conflict("User already exists")
    user = User(name=payload.name, email=payload.email, password=hash_password(payload.password))
    try:
        doc = repos.users.create(user)
    except DuplicateKeyError:
        raise Conflict("User already exists")
    logger.info(f"User registered: {doc['_id']}", extra={"user_id": str(doc["_id"])})
    return doc


def authenticate(repos: Repositories, payload: LoginRequest) -> dict:
    user = repos.users.find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password", "")):
        logger.info("Login failed", extra={"user_id": str(user["_id"]) if user else None})
        raise InvalidCredentials()
    return user


def list_users(repos: Repositories) -> List[dict]:
    return repos.users.find_many()


@router.get("")
def get_users(repos: Repositories = Depends(get_repositories)):
    return [serialize(u) for u in list_users(repos)]


@router.post("")
def create_user(payload: RegisterRequest, repos: Repositories = Depends(get_repositories)):
    register_user(repos, payload)
    return {"message": "User registered successfully"}
