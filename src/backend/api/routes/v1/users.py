from __future__ import annotations

from fastapi import APIRouter

from api.dependencies import Directory
from models.records import User
from models.schemas.requests import CreateUserRequest

router = APIRouter()


@router.post("/users", response_model=User, status_code=201, summary="Register a user")
async def create_user(body: CreateUserRequest, directory: Directory) -> User:
    return await directory.register_user(body.name, body.kind)
