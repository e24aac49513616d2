"""
Local mirror of auth-provider accounts.

The provider is the source of truth; the users table only exists so customers
have an owner row to reference. Rows are created lazily and refreshed on login.
"""
from typing import Optional

import structlog
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InternalError, NotFoundError, translate_integrity_error
from app.core.firebase import AuthProvider, AuthProviderError, ProviderUser
from app.models.user import User

logger = structlog.get_logger()

DEFAULT_DISPLAY_NAME = "Unknown User"


def user_values(provider_user: ProviderUser) -> dict:
    # Accounts without an email (phone sign-in) still need a unique value
    email = (provider_user.email or f"{provider_user.uid}@users.invalid").lower()
    return {
        "id": provider_user.uid,
        "email": email,
        "display_name": provider_user.display_name or DEFAULT_DISPLAY_NAME,
        "email_verified": provider_user.email_verified,
        "photo_url": provider_user.photo_url,
        "disabled": provider_user.disabled,
        "last_sign_in_time": provider_user.last_sign_in_time,
    }


async def upsert_user(session: AsyncSession, provider_user: ProviderUser) -> User:
    """Insert or refresh the mirror row. Flushes only; the caller owns the transaction."""
    values = user_values(provider_user)
    stmt = pg_insert(User).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[User.id],
        set_={key: stmt.excluded[key] for key in values if key != "id"},
    )
    try:
        await session.execute(stmt)
    except IntegrityError as e:
        conflict = translate_integrity_error(e)
        if conflict:
            raise conflict from e
        raise

    return await session.get(User, provider_user.uid, populate_existing=True)


async def ensure_user_exists(session: AsyncSession, provider: AuthProvider, subject_id: str) -> User:
    """
    Returns the local user row, creating it from the provider record if absent.
    A provider outage only matters when there is no local row to fall back on.
    """
    user = await session.get(User, subject_id)
    if user is not None:
        return user

    try:
        provider_user = await provider.get_user(subject_id)
    except AuthProviderError as e:
        logger.error("user_mirror_lookup_failed", subject_id=subject_id, reason=e.code)
        if e.code == AuthProviderError.USER_NOT_FOUND:
            raise NotFoundError("User") from e
        raise InternalError() from e

    user = await upsert_user(session, provider_user)
    logger.info("user_mirror_created", subject_id=subject_id)
    return user


async def sync_user_from_provider(
    session: AsyncSession, provider: AuthProvider, subject_id: str
) -> Optional[User]:
    """Refreshes the mirror row. Returns None when the provider is unreachable."""
    try:
        provider_user = await provider.get_user(subject_id)
    except AuthProviderError as e:
        logger.warning("user_sync_skipped", subject_id=subject_id, reason=e.code)
        return None

    return await upsert_user(session, provider_user)
