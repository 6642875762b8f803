"""Database probe for aiosqlite connections."""

from typing import Any

import aiosqlite

from probekit.core.models import InvocationContext
from probekit.probes.base import Probe

QUERY_OPERATIONS = (
    "execute",
    "executemany",
    "executescript",
    "execute_fetchall",
    "execute_insert",
)

OPERATIONS = QUERY_OPERATIONS + ("commit", "rollback")


class SqliteProbe(Probe):
    """Samples queries and transaction control on aiosqlite connections.

    Attach it to the ``aiosqlite`` module (or anything exposing
    ``connect``) to instrument every connection opened afterwards, or to
    an open ``aiosqlite.Connection``.
    """

    name = "SQLite"
    packages = ("aiosqlite",)
    operations = OPERATIONS

    def attach(self, target: Any) -> None:
        if isinstance(target, aiosqlite.Connection):
            self.instrument_connection(target)
        else:
            self.interceptor.attach_after(target, "connect", self._on_connect)

    def instrument_connection(
        self, connection: aiosqlite.Connection, database: Any = None
    ) -> int:
        return self.instrument(
            connection,
            {"database": str(database) if database is not None else None},
        )

    def _on_connect(self, target: Any, ctx: InvocationContext, connection: Any) -> None:
        database = ctx.args[0] if ctx.args else ctx.kwargs.get("database")
        self.instrument_connection(connection, database)

    def command_for(self, operation: str, ctx: InvocationContext) -> str:
        if operation in QUERY_OPERATIONS and ctx.args and isinstance(ctx.args[0], str):
            keyword = ctx.args[0].lstrip().split(None, 1)
            if keyword:
                return keyword[0].upper()
        return operation
