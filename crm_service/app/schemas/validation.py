"""
Shared validation primitives: strict request base model, reusable field types,
identifier parsing and conversion of pydantic errors into wire-level details.
"""
import re
import uuid
from typing import Annotated, Any, Iterable, List, Mapping

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

from app.core.errors import ErrorDetail, InvalidIdentifierError

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMAIL_MAX_LENGTH = 255


def parse_uuid(value: str) -> uuid.UUID:
    """Canonical 8-4-4-4-12 hex form only; anything else is an identifier format error."""
    if not isinstance(value, str) or not UUID_PATTERN.match(value):
        raise InvalidIdentifierError()
    return uuid.UUID(value)


def is_valid_email(email: str) -> bool:
    if not EMAIL_SHAPE.match(email):
        return False
    if ".." in email:
        return False

    local_part, domain = email.split("@", 1)
    if local_part.startswith(".") or local_part.endswith("."):
        return False
    if domain.startswith(".") or domain.endswith("."):
        return False
    return True


def _normalize_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _check_email(value: str) -> str:
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"email must be at most {EMAIL_MAX_LENGTH} characters long")
    if not is_valid_email(value):
        raise ValueError("Invalid email address")
    return value


# --- Field Types ---
EmailAddress = Annotated[str, BeforeValidator(_normalize_email), AfterValidator(_check_email)]
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]
OptionalText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=128)]


class RequestModel(BaseModel):
    """Strict camelCase input shape: unknown fields are errors, not silently dropped."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=False, extra="forbid")


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Error Formatting ---
REQUEST_LOCATIONS = ("body", "query", "path", "header")


def _field_path(loc: Iterable[Any]) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in REQUEST_LOCATIONS:
        parts = parts[1:]
    return ".".join(parts)


def _field_name(loc: Iterable[Any]) -> str:
    names = [p for p in loc if isinstance(p, str) and p not in REQUEST_LOCATIONS]
    return names[-1] if names else "body"


def _message_for(error: Mapping[str, Any]) -> str:
    err_type = error.get("type", "")
    ctx = error.get("ctx") or {}
    loc = error.get("loc") or ()
    field = _field_name(loc)

    if err_type == "missing":
        if field == "body":
            return "Request body is required"
        return f"{field} is required"
    if err_type == "string_too_short":
        min_length = ctx.get("min_length", 1)
        if min_length <= 1:
            return f"{field} is required"
        return f"{field} must be at least {min_length} characters long"
    if err_type == "string_too_long":
        return f"{field} must be at most {ctx.get('max_length')} characters long"
    if err_type == "extra_forbidden":
        return f"Unrecognized field '{field}'"
    if err_type in ("enum", "literal_error"):
        return f"{field} must be one of: {ctx.get('expected')}"
    if err_type.startswith("datetime") or err_type.startswith("timezone"):
        return "Invalid date format"
    if err_type == "value_error":
        return str(ctx.get("error") or error.get("msg"))
    if err_type == "json_invalid":
        return "Invalid JSON body"
    if err_type in ("model_attributes_type", "dict_type", "model_type"):
        return "Request body must be a JSON object"
    if err_type == "string_type":
        return f"{field} must be a string"
    return str(error.get("msg", "Invalid value"))


def format_validation_errors(errors: Iterable[Mapping[str, Any]]) -> List[ErrorDetail]:
    """Every violation, in pydantic's order, as {field, message} pairs."""
    details = []
    for error in errors:
        loc = error.get("loc") or ()
        details.append(ErrorDetail(field=_field_path(loc) or "body", message=_message_for(error)))
    return details
