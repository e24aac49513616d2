
import structlog
from fastapi import Depends, Request

from app.core.config import Settings
from app.core.errors import InvalidIdentifierError, UnauthenticatedError
from app.core.firebase import AuthProvider, AuthProviderError
from app.schemas.common import OwnedPath
from app.schemas.validation import parse_uuid

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


def get_auth_provider(request: Request) -> AuthProvider:
    return request.app.state.auth_provider


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_subject(
    request: Request,
    provider: AuthProvider = Depends(get_auth_provider),
) -> str:
    """
    Resolves the authenticated subject id from the Bearer token.
    Every failure yields the same 401 so callers learn nothing about why.
    """
    header = request.headers.get("Authorization")
    if not header or not header.startswith(BEARER_PREFIX):
        raise UnauthenticatedError()

    token = header[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthenticatedError()

    try:
        identity = await provider.verify_token(token)
    except AuthProviderError as e:
        logger.warning("auth_token_rejected", reason=e.code)
        raise UnauthenticatedError() from e

    structlog.contextvars.bind_contextvars(subject_id=identity.subject_id)
    return identity.subject_id


class NestedResourceGuard:
    """
    Path gate shared by every customer-scoped route.

    Runs after authentication and before body validation: every path identifier
    must be a canonical UUID or the request stops with INVALID_UUID without
    touching the store. Ownership is resolved later, in the service, with a
    single query on (customer_id, subject_id).
    """

    def __init__(self, resource: str = "customer"):
        self.resource = resource

    async def __call__(
        self,
        request: Request,
        subject_id: str = Depends(get_current_subject),
    ) -> OwnedPath:
        params = request.path_params
        try:
            customer_id = parse_uuid(params.get("customer_id", ""))
            child_id = parse_uuid(params["child_id"]) if "child_id" in params else None
        except InvalidIdentifierError:
            logger.info("invalid_path_identifier", resource=self.resource, path=request.url.path)
            raise

        return OwnedPath(subject_id=subject_id, customer_id=customer_id, child_id=child_id)


customer_guard = NestedResourceGuard("customer")
phone_guard = NestedResourceGuard("phone")
address_guard = NestedResourceGuard("address")
note_guard = NestedResourceGuard("note")
reminder_guard = NestedResourceGuard("reminder")
