"""User record API."""
from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, List

from fastapi import APIRouter, Body, Depends, Query, Request

from profile_api.schemas import UserDTO, UserEnvelope, UserPage
from profile_api.services.users import UserCollectionService

router = APIRouter(prefix="/api/users", tags=["users"])


async def get_user_service(request: Request) -> AsyncIterator[UserCollectionService]:
    async with request.app.state.store.session() as session:
        yield UserCollectionService(session)


def _parse_int(value: str | None) -> int | None:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


@router.post("", response_model=UserEnvelope, status_code=201)
async def create_user(
    payload: Any = Body(...),
    service: UserCollectionService = Depends(get_user_service),
) -> UserEnvelope:
    """Validate and store a new user."""

    user = await service.create(payload)
    return UserEnvelope(message="User created successfully", user=user)


@router.get("", response_model=UserPage)
async def list_users(
    page: str | None = Query(None),
    limit: str | None = Query(None),
    service: UserCollectionService = Depends(get_user_service),
) -> UserPage:
    """Return one page of users, newest first."""

    return await service.list(page=_parse_int(page), limit=_parse_int(limit))


@router.get("/search", response_model=List[UserDTO])
@router.get("/search/", response_model=List[UserDTO])
@router.get("/search/{query}", response_model=List[UserDTO])
async def search_users(query: str = "", service: UserCollectionService = Depends(get_user_service)) -> List[UserDTO]:
    """Case-insensitive substring search on name or email; an empty query finds nothing."""

    return await service.search(query)


@router.get("/{user_id}", response_model=UserDTO)
async def get_user(user_id: str, service: UserCollectionService = Depends(get_user_service)) -> UserDTO:
    return await service.get(user_id)


@router.put("/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: str,
    payload: Any = Body(...),
    service: UserCollectionService = Depends(get_user_service),
) -> UserEnvelope:
    user = await service.update(user_id, payload)
    return UserEnvelope(message="User updated successfully", user=user)


@router.delete("/{user_id}", response_model=UserEnvelope)
async def delete_user(user_id: str, service: UserCollectionService = Depends(get_user_service)) -> UserEnvelope:
    user = await service.delete(user_id)
    return UserEnvelope(message="User deleted successfully", user=user)
