"""
Identity provider adapter.

Wraps the Firebase Admin SDK behind a small async interface so routes and services
never touch the SDK directly. The SDK is blocking, so every call is pushed to a
worker thread. Tests inject their own AuthProvider through create_app().
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import firebase_admin
import structlog
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError
from pydantic import BaseModel

from app.core.config import Settings

logger = structlog.get_logger()

FIREBASE_APP_NAME = "crm-service"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
ANONYMOUS_PROVIDER = "anonymous"


class AuthProviderError(Exception):
    EMAIL_EXISTS = "already-exists"
    USER_NOT_FOUND = "not-found"
    INVALID_TOKEN = "invalid-token"
    UNAVAILABLE = "unavailable"

    def __init__(self, code: str, message: str = ""):
        self.code = code
        super().__init__(message or code)


class VerifiedIdentity(BaseModel):
    subject_id: str
    email: Optional[str] = None
    email_verified: bool = False


class ProviderUser(BaseModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    email_verified: bool = False
    photo_url: Optional[str] = None
    disabled: bool = False
    last_sign_in_time: Optional[datetime] = None


class AuthProvider(ABC):
    @abstractmethod
    async def verify_token(self, token: str) -> VerifiedIdentity: ...

    @abstractmethod
    async def get_user(self, subject_id: str) -> ProviderUser: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> ProviderUser: ...

    @abstractmethod
    async def create_user(self, email: str, password: str, display_name: Optional[str] = None) -> ProviderUser: ...

    @abstractmethod
    async def create_custom_token(self, subject_id: str) -> str: ...


def _to_provider_user(record) -> ProviderUser:
    last_sign_in = None
    metadata = getattr(record, "user_metadata", None)
    if metadata is not None and metadata.last_sign_in_timestamp:
        # SDK reports milliseconds since epoch
        last_sign_in = datetime.fromtimestamp(metadata.last_sign_in_timestamp / 1000, tz=timezone.utc)

    return ProviderUser(
        uid=record.uid,
        email=record.email,
        display_name=record.display_name,
        email_verified=bool(record.email_verified),
        photo_url=record.photo_url,
        disabled=bool(record.disabled),
        last_sign_in_time=last_sign_in,
    )


def _load_credentials(settings: Settings):
    if settings.FIREBASE_PRIVATE_KEY_PATH:
        return credentials.Certificate(settings.FIREBASE_PRIVATE_KEY_PATH)

    if settings.is_production:
        raise RuntimeError("FIREBASE_PRIVATE_KEY_PATH is required in production")

    if settings.FIREBASE_PRIVATE_KEY and settings.FIREBASE_CLIENT_EMAIL:
        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "private_key": settings.FIREBASE_PRIVATE_KEY.get_secret_value(),
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "token_uri": GOOGLE_TOKEN_URI,
        })

    return credentials.ApplicationDefault()


class FirebaseAuthProvider(AuthProvider):
    def __init__(self, app: firebase_admin.App):
        self.app = app

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseAuthProvider":
        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
            app = firebase_admin.initialize_app(_load_credentials(settings), options, name=FIREBASE_APP_NAME)
            logger.info("firebase_initialized", project_id=settings.FIREBASE_PROJECT_ID or None)
        return cls(app)

    async def verify_token(self, token: str) -> VerifiedIdentity:
        try:
            decoded = await asyncio.to_thread(auth.verify_id_token, token, self.app, True)
        except (ValueError, FirebaseError) as e:
            # A deleted account surfaces as UserNotFoundError from the revocation check
            raise AuthProviderError(AuthProviderError.INVALID_TOKEN, str(e)) from e

        if decoded.get("firebase", {}).get("sign_in_provider") == ANONYMOUS_PROVIDER:
            raise AuthProviderError(AuthProviderError.INVALID_TOKEN, "anonymous sign-in is not accepted")

        return VerifiedIdentity(
            subject_id=decoded["uid"],
            email=decoded.get("email"),
            email_verified=bool(decoded.get("email_verified", False)),
        )

    async def get_user(self, subject_id: str) -> ProviderUser:
        try:
            record = await asyncio.to_thread(auth.get_user, subject_id, self.app)
        except auth.UserNotFoundError as e:
            raise AuthProviderError(AuthProviderError.USER_NOT_FOUND, str(e)) from e
        except FirebaseError as e:
            raise AuthProviderError(AuthProviderError.UNAVAILABLE, str(e)) from e
        return _to_provider_user(record)

    async def get_user_by_email(self, email: str) -> ProviderUser:
        try:
            record = await asyncio.to_thread(auth.get_user_by_email, email, self.app)
        except auth.UserNotFoundError as e:
            raise AuthProviderError(AuthProviderError.USER_NOT_FOUND, str(e)) from e
        except FirebaseError as e:
            raise AuthProviderError(AuthProviderError.UNAVAILABLE, str(e)) from e
        return _to_provider_user(record)

    async def create_user(self, email: str, password: str, display_name: Optional[str] = None) -> ProviderUser:
        kwargs = {"email": email, "password": password, "email_verified": False, "app": self.app}
        if display_name:
            kwargs["display_name"] = display_name

        try:
            record = await asyncio.to_thread(lambda: auth.create_user(**kwargs))
        except auth.EmailAlreadyExistsError as e:
            raise AuthProviderError(AuthProviderError.EMAIL_EXISTS, str(e)) from e
        except FirebaseError as e:
            raise AuthProviderError(AuthProviderError.UNAVAILABLE, str(e)) from e
        return _to_provider_user(record)

    async def create_custom_token(self, subject_id: str) -> str:
        try:
            token = await asyncio.to_thread(auth.create_custom_token, subject_id, None, self.app)
        except FirebaseError as e:
            raise AuthProviderError(AuthProviderError.UNAVAILABLE, str(e)) from e
        if isinstance(token, bytes):
            return token.decode("utf-8")
        return token
