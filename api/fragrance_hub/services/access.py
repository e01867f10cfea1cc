# fragrance_hub/services/access.py
"""
Data gateway with restricted -> elevated fallback.

Every operation is issued first on the restricted identity. When that fails,
or comes back empty where rows were expected, the same operation is issued
once more on the elevated identity and that result is returned. Callers never
learn which identity served them.

- Reads that fail on both identities degrade to an empty result.
- Writes run inside one transaction per attempt and always propagate errors,
  translated to readable messages.
- Constraint violations are not escalated: the elevated identity would hit
  the same constraint.
"""
from __future__ import annotations
import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fragrance_hub.database import transaction, get_session_factories
from fragrance_hub.db_models import Product
from fragrance_hub.errors import (
    FragranceHubError, ZeroRowsAffected, is_constraint_error, translate_db_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionOp = Callable[[AsyncSession], Awaitable[T]]


def _row_count(result: Any) -> int:
    if result is None:
        return 0
    if isinstance(result, (list, tuple, set, dict)):
        return len(result)
    return 1


class DataGateway:
    """Runs session operations against the restricted identity, escalating once."""

    def __init__(
        self,
        restricted: async_sessionmaker[AsyncSession],
        elevated: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.restricted = restricted
        self.elevated = elevated

    # =========================================================================
    # Reads
    # =========================================================================

    async def read(self, name: str, op: SessionOp[List[T]]) -> List[T]:
        """List read. Empty or failed restricted results are re-issued once on the elevated identity."""
        restricted_rows: Optional[List[T]] = None
        try:
            async with self.restricted() as session:
                restricted_rows = await op(session)
            logger.info(f"{name}: restricted identity returned {_row_count(restricted_rows)} rows")
            if restricted_rows:
                return restricted_rows
        except Exception as e:
            logger.warning(f"{name}: restricted identity failed: {e}")

        if self.elevated is None:
            return restricted_rows or []

        try:
            async with self.elevated() as session:
                elevated_rows = await op(session)
        except Exception as e:
            logger.error(f"{name}: elevated identity failed too, returning empty result: {e}")
            return []

        logger.info(
            f"{name}: elevated identity returned {_row_count(elevated_rows)} rows "
            f"(restricted: {_row_count(restricted_rows)})"
        )
        return elevated_rows or []

    async def read_one(self, name: str, op: SessionOp[Optional[T]]) -> Optional[T]:
        """Single-row read; None on a miss from both identities."""
        try:
            async with self.restricted() as session:
                row = await op(session)
            if row is not None:
                return row
            logger.info(f"{name}: restricted identity found no row")
        except Exception as e:
            logger.warning(f"{name}: restricted identity failed: {e}")

        if self.elevated is None:
            return None

        try:
            async with self.elevated() as session:
                row = await op(session)
        except Exception as e:
            logger.error(f"{name}: elevated identity failed too: {e}")
            return None
        logger.info(f"{name}: elevated identity {'found' if row is not None else 'did not find'} the row")
        return row

    # =========================================================================
    # Writes
    # =========================================================================

    async def write(self, name: str, op: SessionOp[T], payload: Optional[dict] = None) -> T:
        """
        Transactional write with one-shot escalation.

        Escalates on ZeroRowsAffected and on database errors that are not
        constraint violations (permission / row-level security denials).
        """
        try:
            result = await self._run_write(self.restricted, op)
            logger.info(f"{name}: committed on restricted identity")
            return result
        except ZeroRowsAffected as e:
            if self.elevated is None:
                raise
            logger.warning(f"{name}: restricted identity affected 0 rows ({e.message}), escalating")
        except FragranceHubError:
            raise
        except SQLAlchemyError as e:
            if self.elevated is None or is_constraint_error(e):
                logger.error(f"{name}: write failed: {e}")
                raise translate_db_error(e, payload) from e
            logger.warning(f"{name}: restricted identity denied the write ({e}), escalating")

        try:
            result = await self._run_write(self.elevated, op)
        except FragranceHubError as e:
            logger.error(f"{name}: elevated identity failed: {e.message}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"{name}: elevated identity failed: {e}")
            raise translate_db_error(e, payload) from e
        logger.info(f"{name}: committed on elevated identity")
        return result

    async def _run_write(self, factory: async_sessionmaker[AsyncSession], op: SessionOp[T]) -> T:
        async with factory() as session:
            async with transaction(session):
                return await op(session)


def get_gateway() -> DataGateway:
    """FastAPI dependency."""
    restricted, elevated = get_session_factories()
    return DataGateway(restricted, elevated)


# ============================================================================
# Empty-string normalization
# ============================================================================

def _optional_columns(model) -> frozenset[str]:
    """Every nullable, non-key column of a model; covers new optional columns automatically."""
    mapper = inspect(model)
    return frozenset(
        col.key
        for col in mapper.columns
        if col.nullable and not col.primary_key
    )


OPTIONAL_PRODUCT_FIELDS = _optional_columns(Product)


def normalize_empty_strings(payload: dict, optional_fields: frozenset[str] = OPTIONAL_PRODUCT_FIELDS) -> dict:
    """Empty strings on optional columns become NULL instead of violating FK/type constraints."""
    out = dict(payload)
    for key, value in payload.items():
        if key in optional_fields and isinstance(value, str) and not value.strip():
            out[key] = None
    return out
