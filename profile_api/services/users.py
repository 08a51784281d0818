"""Record-level business rules for user profiles."""
from __future__ import annotations

import logging
import math
from typing import Any, List

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.exceptions import DuplicateEmailError, UserNotFoundError
from profile_api.models import User
from profile_api.schemas import UserDTO, UserPage, validate_user, validate_user_update
from profile_api.utils import next_timestamp, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def _positive_or(value: int | None, default: int) -> int:
    if value is None or value < 1:
        return default
    return value


class UserCollectionService:
    """Create, read, update, delete, list and search user records on one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _email_owner(self, email: str, *, exclude_id: str | None = None) -> User | None:
        stmt = select(User).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def _load(self, user_id: str) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _commit(self, email: str | None) -> None:
        # The unique constraint on email catches writers that raced past the lookup.
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.info("Unique constraint rejected email %s", email)
            raise DuplicateEmailError(email or "") from exc

    async def create(self, candidate: Any) -> UserDTO:
        payload = validate_user(candidate)

        if await self._email_owner(payload.email) is not None:
            logger.info("Rejected create for existing email %s", payload.email)
            raise DuplicateEmailError(payload.email)

        now = utcnow()
        user = User(**payload.model_dump(), created_at=now, updated_at=now)
        self.session.add(user)
        await self._commit(payload.email)

        logger.info("Created user %s", user.id)
        return UserDTO.model_validate(user)

    async def get(self, user_id: str) -> UserDTO:
        return UserDTO.model_validate(await self._load(user_id))

    async def list(self, page: int | None = None, limit: int | None = None) -> UserPage:
        page = _positive_or(page, DEFAULT_PAGE)
        limit = _positive_or(limit, DEFAULT_LIMIT)

        total = (await self.session.execute(select(func.count()).select_from(User))).scalar_one()
        stmt = select(User).order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
        rows = (await self.session.execute(stmt)).scalars().all()

        return UserPage(
            users=[UserDTO.model_validate(row) for row in rows],
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_users=total,
        )

    async def update(self, user_id: str, candidate: Any) -> UserDTO:
        changes = validate_user_update(candidate).changes()

        email = changes.get("email")
        if email is not None and await self._email_owner(email, exclude_id=user_id) is not None:
            logger.info("Rejected update of %s to existing email %s", user_id, email)
            raise DuplicateEmailError(email)

        user = await self._load(user_id)
        for field, value in changes.items():
            setattr(user, field, value)
        user.updated_at = next_timestamp(user.updated_at)
        await self._commit(email)

        logger.info("Updated user %s", user_id)
        return UserDTO.model_validate(user)

    async def delete(self, user_id: str) -> UserDTO:
        user = await self._load(user_id)
        snapshot = UserDTO.model_validate(user)

        await self.session.delete(user)
        await self.session.commit()

        logger.info("Deleted user %s", user_id)
        return snapshot

    async def search(self, query: str | None) -> List[UserDTO]:
        """Case-insensitive substring match on name or email; a blank query matches nothing."""

        term = (query or "").strip()
        if not term:
            return []

        stmt = (
            select(User)
            .where(
                or_(
                    User.name.icontains(term, autoescape=True),
                    User.email.icontains(term, autoescape=True),
                )
            )
            .order_by(User.created_at.desc())
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [UserDTO.model_validate(row) for row in rows]
