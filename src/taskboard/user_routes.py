"""
User REST Endpoints
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response

from .dependencies import get_user_service
from .models import CreateUserRequest, UpdateUserRequest, UserResponse
from .service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(request: CreateUserRequest,
                      service: UserService = Depends(get_user_service)):
    return UserResponse.from_user(service.create_user(request))


@router.get("", response_model=List[UserResponse])
async def list_users(service: UserService = Depends(get_user_service)):
    return [UserResponse.from_user(user) for user in service.list_users()]


@router.get("/active", response_model=List[UserResponse])
async def list_active_users(service: UserService = Depends(get_user_service)):
    return [UserResponse.from_user(user) for user in service.list_users(active_only=True)]


@router.get("/username/{username}", response_model=UserResponse)
async def get_user_by_username(username: str, service: UserService = Depends(get_user_service)):
    return UserResponse.from_user(service.get_user_by_username(username))


@router.get("/email/{email}", response_model=UserResponse)
async def get_user_by_email(email: str, service: UserService = Depends(get_user_service)):
    return UserResponse.from_user(service.get_user_by_email(email))


@router.get("/exists/username/{username}", response_model=bool)
async def username_exists(username: str, service: UserService = Depends(get_user_service)):
    return service.username_exists(username)


@router.get("/exists/email/{email}", response_model=bool)
async def email_exists(email: str, service: UserService = Depends(get_user_service)):
    return service.email_exists(email)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, service: UserService = Depends(get_user_service)):
    return UserResponse.from_user(service.get_user(user_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: UUID, request: UpdateUserRequest,
                      service: UserService = Depends(get_user_service)):
    return UserResponse.from_user(service.update_user(user_id, request))


@router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: UUID, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return Response(status_code=204)


@router.delete("/{user_id}/hard", status_code=204)
async def hard_delete_user(user_id: UUID, service: UserService = Depends(get_user_service)):
    service.hard_delete_user(user_id)
    return Response(status_code=204)
