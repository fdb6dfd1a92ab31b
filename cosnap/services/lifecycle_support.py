"""Lifecycle Support — transaction scope and clocks shared by the lifecycle services.

Invariants:
    - transaction() commits on success and rolls back on ANY exception, then re-raises
    - Clocks are UTC; date comparisons use the UTC calendar date
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator

from cosnap.core.repository_protocols import UnitOfWork


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


@asynccontextmanager
async def transaction(uow: UnitOfWork) -> AsyncIterator[None]:
    try:
        yield
    except BaseException:
        await uow.rollback()
        raise
    await uow.commit()
