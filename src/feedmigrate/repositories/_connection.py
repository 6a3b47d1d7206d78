"""
Connection handling helper for SQLAlchemy-backed repositories.

Repositories accept either an AsyncEngine or an AsyncConnection. The
`execute_with_connection` async context manager gives them one code path
for both:
- AsyncEngine inputs get a fresh connection, optionally in a transaction
- AsyncConnection inputs are used directly; the caller owns the transaction
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


@asynccontextmanager
async def execute_with_connection(
    conn: AsyncConnection | AsyncEngine,
    transactional: bool = True,
) -> AsyncIterator[AsyncConnection]:
    """
    Yield a connection ready for ``execute()`` calls.

    Args:
        conn: Database connection or engine
        transactional: For an AsyncEngine, run inside ``begin()`` when True
            and inside ``connect()`` when False. Ignored for connections.

    Example:
        >>> async with execute_with_connection(self._conn) as conn:
        ...     result = await conn.execute(REPLACE_IF_MATCH, params)
        ...     replaced = result.rowcount == 1
    """
    if not isinstance(conn, AsyncEngine):
        yield conn
        return

    opened = conn.begin() if transactional else conn.connect()
    async with opened as connection:
        yield connection
