from __future__ import annotations

import logging
from typing import Any, final

import sqlalchemy as sa


logger = logging.getLogger(__name__)


@final
class Connection:
    """Adapter over a SQLAlchemy ``Connection`` used by finders and join rendering.

    Only two capabilities are needed by the association layer: executing a
    statement and quoting an identifier for the bound dialect. Transactions
    are left to the caller that owns the underlying connection.
    """

    __slots__ = ("_connection",)

    def __init__(self, connection: sa.Connection) -> None:
        self._connection = connection

    @property
    def dialect(self) -> sa.Dialect:
        return self._connection.dialect

    def quote_name(self, identifier: str) -> str:
        """Quote *identifier* for the bound dialect."""
        return self.dialect.identifier_preparer.quote_identifier(identifier)

    def execute(self, statement: sa.Executable) -> sa.CursorResult[Any]:
        logger.debug("Executing %s", statement)
        return self._connection.execute(statement)
