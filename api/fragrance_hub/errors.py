# fragrance_hub/errors.py
"""
Error taxonomy for Fragrance Hub.

Database errors are translated into readable messages at the data-access
boundary; routers map the hierarchy onto HTTP status codes.
"""
from __future__ import annotations
from typing import Optional


class FragranceHubError(Exception):
    """Base class for all application errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FragranceHubError):
    status_code = 404


class ValidationFailed(FragranceHubError):
    status_code = 400


class ConstraintViolation(FragranceHubError):
    status_code = 409

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ZeroRowsAffected(FragranceHubError):
    """An update or delete matched no rows (missing, or hidden by row-level security)."""
    status_code = 404


# ============================================================================
# SQLSTATE translation
# ============================================================================

UNIQUE_VIOLATION = "23505"
NOT_NULL_VIOLATION = "23502"
CHECK_VIOLATION = "23514"
FOREIGN_KEY_VIOLATION = "23503"

CONSTRAINT_CODES = {UNIQUE_VIOLATION, NOT_NULL_VIOLATION, CHECK_VIOLATION, FOREIGN_KEY_VIOLATION}

# SQLite carries no SQLSTATE, only a message
_SQLITE_PATTERNS = (
    ("UNIQUE constraint failed", UNIQUE_VIOLATION),
    ("NOT NULL constraint failed", NOT_NULL_VIOLATION),
    ("CHECK constraint failed", CHECK_VIOLATION),
    ("FOREIGN KEY constraint failed", FOREIGN_KEY_VIOLATION),
)

PRODUCT_TYPES_TEXT = "Fragrance Bottles, Crimp, Accessories, Packaging"


def sqlstate_of(exc: BaseException) -> Optional[str]:
    """Extract the SQLSTATE code from a driver exception wrapped by SQLAlchemy."""
    orig = getattr(exc, "orig", None) or exc
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    # asyncpg errors are wrapped once more by the SQLAlchemy adapter
    cause = getattr(orig, "__cause__", None)
    if cause is not None:
        code = getattr(cause, "sqlstate", None)
        if code:
            return str(code)
    text = str(orig)
    for needle, code in _SQLITE_PATTERNS:
        if needle in text:
            return code
    return None


def _raw_message(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None) or exc
    return str(orig).strip()


def is_constraint_error(exc: BaseException) -> bool:
    return sqlstate_of(exc) in CONSTRAINT_CODES


def translate_db_error(exc: BaseException, payload: Optional[dict] = None) -> FragranceHubError:
    """
    Map a database exception to a readable application error.

    Known constraint codes get field-specific messages; anything else keeps
    the raw database message.
    """
    if isinstance(exc, FragranceHubError):
        return exc

    payload = payload or {}
    code = sqlstate_of(exc)
    raw = _raw_message(exc)

    if code == UNIQUE_VIOLATION:
        if "item_number" in raw and payload.get("item_number"):
            return ConstraintViolation(f'Item number "{payload["item_number"]}" already exists', code)
        if "code" in raw and payload.get("code"):
            return ConstraintViolation(f'Product code "{payload["code"]}" already exists', code)
        return ConstraintViolation("Record with this information already exists", code)
    if code == NOT_NULL_VIOLATION:
        return ConstraintViolation(
            "Missing required fields. Please fill in all required fields.", code
        )
    if code == CHECK_VIOLATION:
        if "product_type" in raw or "chk_product_type" in raw:
            return ConstraintViolation(
                f"Invalid product type. Must be one of: {PRODUCT_TYPES_TEXT}", code
            )
        return ConstraintViolation(f"Invalid value: {raw}", code)
    if code == FOREIGN_KEY_VIOLATION:
        return ConstraintViolation(
            "Record is still referenced by other records or references a missing record", code
        )
    return FragranceHubError(f"Database error: {raw}")
