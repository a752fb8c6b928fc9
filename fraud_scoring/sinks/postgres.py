"""PostgreSQL audit sink."""

import logging

import psycopg
from psycopg import sql

from fraud_scoring.config import PostgresConfig
from fraud_scoring.exceptions import SinkError
from fraud_scoring.models import AuditRecord
from fraud_scoring.sinks.serialization import to_json

logger = logging.getLogger(__name__)


class PostgresAuditSink:
    """Write audit records to a table keyed by transaction id.

    Inserts use ``ON CONFLICT DO NOTHING`` so re-storing a verdict leaves a
    single row.
    """

    COLUMNS = (
        "transaction_id",
        "user_id",
        "decision",
        "score",
        "decided_at",
        "amount",
        "currency",
        "transaction_ts",
        "degraded_evaluators",
        "record",
    )

    DDL = """
        CREATE TABLE IF NOT EXISTS {table} (
            transaction_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            decision TEXT NOT NULL,
            score DOUBLE PRECISION NOT NULL,
            decided_at TIMESTAMPTZ NOT NULL,
            amount NUMERIC(18, 2) NOT NULL,
            currency CHAR(3) NOT NULL,
            transaction_ts TIMESTAMPTZ NOT NULL,
            degraded_evaluators TEXT[] NOT NULL DEFAULT '{{}}',
            record JSONB NOT NULL
        )
    """

    def __init__(
        self,
        connection_string: str | PostgresConfig,
        table: str | None = None,
        create_table: bool = True,
    ) -> None:
        """Initialize PostgreSQL sink.

        Parameters
        ----------
        connection_string : str | PostgresConfig
            libpq connection string or config.
        table : str | None
            Table name; defaults to the config's ``table`` or ``fraud_audit``.
        create_table : bool
            Create the table if it does not exist.
        """
        if isinstance(connection_string, PostgresConfig):
            table = table or connection_string.table
            connection_string = connection_string.connection_string
        self.table = table or "fraud_audit"
        try:
            self.conn = psycopg.connect(connection_string)
        except psycopg.Error as exc:
            raise SinkError(f"Cannot connect to PostgreSQL: {exc}") from exc

        self._insert = sql.SQL(
            "INSERT INTO {table} ({columns}) VALUES ({values}) ON CONFLICT (transaction_id) DO NOTHING"
        ).format(
            table=sql.Identifier(self.table),
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in self.COLUMNS),
            values=sql.SQL(", ").join(sql.Placeholder() for _ in self.COLUMNS),
        )
        if create_table:
            self._execute(sql.SQL(self.DDL).format(table=sql.Identifier(self.table)))
        self.written = 0

    def _row(self, record: AuditRecord) -> tuple:
        verdict, tx = record.verdict, record.transaction
        return (
            verdict.transaction_id,
            verdict.user_id,
            verdict.decision.value,
            verdict.score,
            verdict.decided_at,
            tx.amount,
            tx.currency,
            tx.timestamp,
            verdict.degraded_evaluators,
            to_json(record),
        )

    def _execute(self, statement: sql.Composable, params: tuple | None = None) -> int:
        try:
            with self.conn.cursor() as cur:
                cur.execute(statement, params)
                rowcount = cur.rowcount
            self.conn.commit()
        except psycopg.Error as exc:
            self.conn.rollback()
            raise SinkError(f"PostgreSQL write to {self.table} failed: {exc}") from exc
        return rowcount

    def store(self, record: AuditRecord) -> None:
        """Insert ``record``; a row for the same transaction id is kept as is."""
        inserted = self._execute(self._insert, self._row(record))
        if inserted:
            self.written += 1
        else:
            logger.debug("Audit record for %s already stored", record.transaction_id)

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
        logger.info("PostgreSQL audit sink closed: %d records written", self.written)
