from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from doorstep.core.config import settings
from doorstep.db.mongo import mongodb
from doorstep.utils.errors import ConcurrentModification

WRITE_CONFLICT = 112


async def get_database():
    """Return the active database connection."""
    return mongodb.db


def _is_transient(exc: OperationFailure) -> bool:
    return exc.has_error_label("TransientTransactionError") or exc.code == WRITE_CONFLICT


@asynccontextmanager
async def atomic(db: AsyncIOMotorDatabase) -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
    """
    One atomic unit of ledger work.

    Yields a session bound to a multi-document transaction; every repository
    created with it commits or rolls back together. Lost races surface as
    ConcurrentModification so the caller can retry the whole unit.

    With MONGODB_TRANSACTIONS disabled the unit yields None and writes are
    issued without a session.
    """
    try:
        if not settings.MONGODB_TRANSACTIONS:
            yield None
            return

        async with await db.client.start_session() as session:
            async with session.start_transaction():
                yield session
    except DuplicateKeyError as exc:
        raise ConcurrentModification(
            "A concurrent write created the same record; retry the operation",
            {"reason": "duplicate_key"},
        ) from exc
    except OperationFailure as exc:
        if _is_transient(exc):
            raise ConcurrentModification(
                "The ledger changed while this operation ran; retry the operation",
                {"reason": "write_conflict"},
            ) from exc
        raise
