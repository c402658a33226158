"""User repository — data access layer for user records."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from otp_gateway.models.user import User


class UserRepository:
    """Encapsulates all database queries related to users."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, user_id: int) -> User | None:
        return await self._session.get(User, user_id)

    async def find_by_phone(self, phone: str) -> User | None:
        """Look up a user by their phone number.

        The phone is expected in E.164 format (e.g. ``+15551234567``).
        """
        stmt = select(User).where(User.phone == phone)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_refresh_token(self, refresh_token: str) -> User | None:
        stmt = select(User).where(User.refresh_token == refresh_token)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, phone: str) -> User:
        """Return the user for *phone*, adding an unverified one if missing.

        A new user is flushed (so it has an ``id``) but not committed.
        """
        user = await self.find_by_phone(phone)
        if user is not None:
            return user
        user = User(phone=phone, is_verified=False)
        self._session.add(user)
        await self._session.flush()
        return user
