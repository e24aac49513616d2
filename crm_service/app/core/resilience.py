import asyncio

import structlog
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

DEFAULT_ATTEMPTS = 3

TRANSIENT_MARKERS = (
    "connection reset",
    "connection was closed",
    "connection refused",
    "timeout",
    "timed out",
    "server closed the connection",
    "terminating connection",
)


def is_transient_db_error(exc: BaseException) -> bool:
    """
    Connection-level failures worth retrying. Constraint violations, syntax errors
    and anything else raised by a healthy connection are not.
    """
    if isinstance(exc, (ConnectionResetError, ConnectionRefusedError, asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, (OperationalError, InterfaceError)):
        msg = str(exc).lower()
        return any(marker in msg for marker in TRANSIENT_MARKERS)
    return False


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "db_transient_error_retrying",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


def db_retrying(attempts: int = DEFAULT_ATTEMPTS) -> AsyncRetrying:
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception(is_transient_db_error),
        before_sleep=_log_retry,
        reraise=True,
    )
