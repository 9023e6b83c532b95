"""Operational errors and the translation of library errors into them."""

from typing import Any, Dict, List, Sequence

from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    """An anticipated failure that is safe to report to the client verbatim."""

    is_operational = True

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"


def handle_token_error(exc: JWTError) -> AppError:
    if isinstance(exc, ExpiredSignatureError):
        return AppError("Token has expired !", 401)
    return AppError("Invalid token. Please login again", 401)


def handle_duplicate_field_error(exc: IntegrityError) -> AppError:
    return AppError("Duplicate field value. Please use another value", 400)


def _clean_message(message: str) -> str:
    # pydantic prefixes messages raised from custom validators
    for prefix in ("Value error, ", "Assertion failed, "):
        if message.startswith(prefix):
            return message[len(prefix):]
    return message


def handle_validation_error(errors: Sequence[Dict[str, Any]]) -> AppError:
    """Collapse request validation errors into a single 400.

    A malformed path parameter is reported like a cast failure
    (``invalid id : abc``) rather than as a generic validation message.
    """
    for error in errors:
        loc = error.get("loc") or ()
        if loc and loc[0] == "path":
            name = "id" if str(loc[-1]).endswith("_id") else loc[-1]
            return AppError(f"invalid {name} : {error.get('input')}", 400)

    messages: List[str] = []
    for error in errors:
        loc = [str(part) for part in (error.get("loc") or ()) if part not in ("body", "query")]
        field = ".".join(loc)
        message = _clean_message(error.get("msg", "invalid value"))
        messages.append(f"{field}: {message}" if field else message)
    return AppError(
        f"Invalid input given. Please handle the following. {'. '.join(messages)}", 400
    )

