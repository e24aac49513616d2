import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError, ConflictError, ErrorCode, InternalError, NotFoundError
from app.core.firebase import AuthProvider, AuthProviderError
from app.models.user import User
from app.schemas.auth import LoginRequest, LoginResponse, SignupRequest, SignupResponse
from app.services.users import ensure_user_exists, sync_user_from_provider, upsert_user

logger = structlog.get_logger()


class AuthService:
    def __init__(self, session: AsyncSession, provider: AuthProvider):
        self.session = session
        self.provider = provider

    async def _custom_token(self, subject_id: str) -> str:
        try:
            return await self.provider.create_custom_token(subject_id)
        except AuthProviderError as e:
            logger.error("custom_token_failed", subject_id=subject_id, reason=e.code)
            raise InternalError() from e

    async def signup(self, data: SignupRequest) -> SignupResponse:
        """
        Creates the provider identity, then the local mirror row.
        The provider side cannot be rolled back: if the local write fails the
        identity is left orphaned and logged for manual cleanup.
        """
        try:
            provider_user = await self.provider.create_user(data.email, data.password, data.display_name)
        except AuthProviderError as e:
            if e.code == AuthProviderError.EMAIL_EXISTS:
                raise ConflictError("Email already in use", ErrorCode.EMAIL_ALREADY_EXISTS) from e
            logger.error("signup_provider_failed", reason=e.code)
            raise InternalError("Failed to create user") from e

        try:
            await upsert_user(self.session, provider_user)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error("signup_orphaned_identity", subject_id=provider_user.uid, error=str(e), exc_info=True)
            if isinstance(e, AppError):
                raise
            raise InternalError("Failed to create user") from e

        token = await self._custom_token(provider_user.uid)
        logger.info("user_signed_up", subject_id=provider_user.uid)
        return SignupResponse(user_id=provider_user.uid, token=token)

    async def login(self, data: LoginRequest) -> LoginResponse:
        """
        Issues a custom token for the account behind the email.
        The password is not checked here; the client SDK verifies it when it
        exchanges the custom token.
        """
        try:
            provider_user = await self.provider.get_user_by_email(data.email)
        except AuthProviderError as e:
            if e.code == AuthProviderError.USER_NOT_FOUND:
                raise NotFoundError("User") from e
            logger.error("login_provider_failed", reason=e.code)
            raise InternalError("Authentication failed") from e

        await sync_user_from_provider(self.session, self.provider, provider_user.uid)
        await self.session.commit()

        token = await self._custom_token(provider_user.uid)
        logger.info("user_logged_in", subject_id=provider_user.uid)
        return LoginResponse(user_id=provider_user.uid, token=token)

    async def me(self, subject_id: str) -> User:
        user = await ensure_user_exists(self.session, self.provider, subject_id)
        await self.session.commit()
        return user
