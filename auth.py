"""
Authentication gate and the /api/auth routes.

A token is taken from `x-auth-token`, or failing that from an
`Authorization: Bearer <token>` header. It is resolved to a user on every
request; nothing is cached between requests.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from database import Repositories, get_repositories, serialize
from errors import Unauthenticated
from schemas import LoginRequest, RegisterRequest
from security import create_access_token, decode_access_token
from users import authenticate, register_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def extract_token(x_auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    if x_auth_token:
        return x_auth_token
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


def get_current_user(
    x_auth_token: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
    repos: Repositories = Depends(get_repositories),
) -> dict:
    token = extract_token(x_auth_token, authorization)
    if not token:
        raise Unauthenticated("No token, authorization denied")

    try:
        user_id = decode_access_token(token)
    except Unauthenticated as exc:
        logger.info(f"Token rejected: {exc.reason}")
        raise

    user = repos.users.find_by_id(user_id)
    if not user:
        logger.info("Token user no longer exists", extra={"user_id": user_id})
        raise Unauthenticated("User not found")
    return serialize(user)


@router.post("/register")
def register(payload: RegisterRequest, repos: Repositories = Depends(get_repositories)):
    user = register_user(repos, payload)
    return {"token": create_access_token(str(user["_id"]))}


@router.post("/login")
def login(payload: LoginRequest, repos: Repositories = Depends(get_repositories)):
    user = authenticate(repos, payload)
    return {"token": create_access_token(str(user["_id"]))}


@router.get("")
def current_user(user: dict = Depends(get_current_user)):
    return user
