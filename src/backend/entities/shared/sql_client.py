"""
Async ODBC database connection.

Implements the ``DatabaseConnection`` protocol over aioodbc. The schema
is read through ODBC catalog calls, so any driver with catalog support
works (SQL Server, PostgreSQL, MySQL, SQLite ODBC).
"""

from __future__ import annotations

import asyncio
import logging
import re
import struct
from typing import Any

import aioodbc
from azure.identity import DefaultAzureCredential

from entities.query_validator import detect_operation_type, validate_syntax
from entities.shared.errors import DatabaseError
from models import (
    ColumnSchema,
    DatabaseSchema,
    DryRunResult,
    QueryResult,
    SqlOperationType,
    TableSchema,
    UpdateResult,
)

logger = logging.getLogger(__name__)

# SQL_COPT_SS_ACCESS_TOKEN
_SQL_ACCESS_TOKEN_ATTR = 1256

# Identifiers interpolated into sample queries must look like this.
_TABLE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_.]*$")


def get_azure_sql_token(client_id: str | None = None) -> bytes:
    """
    Get an Azure AD token for SQL Database authentication.

    Args:
        client_id: User-assigned managed identity; None uses the default
            credential chain (CLI, VS Code, system identity).

    Returns:
        Token bytes formatted for the SQL Server ODBC driver
    """
    if client_id:
        credential = DefaultAzureCredential(managed_identity_client_id=client_id)
    else:
        credential = DefaultAzureCredential()

    token = credential.get_token("https://database.windows.net/.default")
    logger.info("SQL token acquired, expires_on=%s", token.expires_on)

    token_bytes = token.token.encode("utf-16-le")
    return struct.pack(f"<I{len(token_bytes)}s", len(token_bytes), token_bytes)


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


class OdbcDatabaseConnection:
    """
    One lazily opened ODBC connection.

    Statements on the same connection are serialized; separate instances
    are independent. Writes are committed only by ``execute_update``.

    Usage:
        async with OdbcDatabaseConnection("main", dsn) as db:
            result = await db.execute_query("SELECT 1")

    Args:
        database_id: Identifier used in logs and routing comments.
        dsn: ODBC connection string.
        query_timeout_seconds: Upper bound on one round-trip.
        use_azure_ad_token: Authenticate with an Azure AD access token
            instead of credentials in the connection string.
        azure_client_id: Managed identity used for the token.
        dialect: sqlglot dialect for the parse check of unexecuted dry runs.
    """

    def __init__(
        self,
        database_id: str,
        dsn: str,
        query_timeout_seconds: float = 60,
        use_azure_ad_token: bool = False,
        azure_client_id: str | None = None,
        dialect: str | None = None,
    ) -> None:
        self.database_id = database_id
        self._dsn = dsn
        self._timeout = query_timeout_seconds
        self._use_token = use_azure_ad_token
        self._client_id = azure_client_id
        self._dialect = dialect
        self._connection: aioodbc.Connection | None = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> OdbcDatabaseConnection:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._connection is not None:
            return
        kwargs: dict[str, Any] = {}
        if self._use_token:
            kwargs["attrs_before"] = {
                _SQL_ACCESS_TOKEN_ATTR: get_azure_sql_token(self._client_id)
            }
        try:
            self._connection = await aioodbc.connect(dsn=self._dsn, autocommit=False, **kwargs)
        except Exception as exc:
            raise DatabaseError.connection_failed(self.database_id, str(exc)) from exc
        logger.info("Connected to database '%s'", self.database_id)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def _conn(self) -> aioodbc.Connection:
        await self.connect()
        if self._connection is None:
            raise DatabaseError.not_connected()
        return self._connection

    # -- Schema ------------------------------------------------------------

    async def get_schema(self) -> DatabaseSchema:
        async with self._lock:
            try:
                return await asyncio.wait_for(self._read_schema(), self._timeout)
            except DatabaseError:
                raise
            except Exception as exc:
                raise DatabaseError.schema_fetch_failed(self.database_id, str(exc)) from exc

    async def _read_schema(self) -> DatabaseSchema:
        connection = await self._conn()
        tables: list[TableSchema] = []
        async with connection.cursor() as cursor:
            await cursor.tables(tableType="TABLE")
            table_rows = await cursor.fetchall()

        for row in table_rows:
            async with connection.cursor() as cursor:
                await cursor.columns(table=row.table_name, schema=row.table_schem)
                column_rows = await cursor.fetchall()
            async with connection.cursor() as cursor:
                await cursor.primaryKeys(table=row.table_name, schema=row.table_schem)
                primary_keys = {r.column_name.lower() for r in await cursor.fetchall()}
            async with connection.cursor() as cursor:
                await cursor.foreignKeys(foreignTable=row.table_name, foreignSchema=row.table_schem)
                foreign_keys = {r.fkcolumn_name.lower() for r in await cursor.fetchall()}

            columns = [
                ColumnSchema(
                    name=c.column_name,
                    type=c.type_name or "",
                    nullable=bool(c.nullable),
                    is_primary_key=c.column_name.lower() in primary_keys,
                    is_foreign_key=c.column_name.lower() in foreign_keys,
                    comment=c.remarks or None,
                )
                for c in column_rows
            ]
            tables.append(
                TableSchema(name=row.table_name, comment=row.remarks or None, columns=columns)
            )

        logger.info("Fetched schema for '%s': %d tables", self.database_id, len(tables))
        return DatabaseSchema(database_name=self.database_id, tables=tables)

    # -- Reads -------------------------------------------------------------

    async def execute_query(self, sql: str) -> QueryResult:
        logger.info("Executing SQL on '%s': %s", self.database_id, sql[:200])
        async with self._lock:
            try:
                return await asyncio.wait_for(self._fetch(sql), self._timeout)
            except DatabaseError:
                raise
            except Exception as exc:
                raise DatabaseError.query_failed(sql, str(exc)) from exc

    async def _fetch(self, sql: str, limit: int | None = None) -> QueryResult:
        connection = await self._conn()
        async with connection.cursor() as cursor:
            await cursor.execute(sql)
            columns = [column[0] for column in cursor.description] if cursor.description else []
            raw_rows = await (cursor.fetchmany(limit) if limit else cursor.fetchall())
        rows = [[_cell(value) for value in row] for row in raw_rows]
        logger.info("Query returned %d rows", len(rows))
        return QueryResult(columns=columns, rows=rows, row_count=len(rows))

    async def get_sample_rows(self, table: str, limit: int) -> QueryResult:
        if not _TABLE_PATTERN.match(table):
            raise DatabaseError(f"Invalid table name: {table!r}")
        async with self._lock:
            try:
                return await asyncio.wait_for(
                    self._fetch(f"SELECT * FROM {table}", limit), self._timeout
                )
            except DatabaseError:
                raise
            except Exception as exc:
                raise DatabaseError.query_failed(f"SELECT * FROM {table}", str(exc)) from exc

    # -- Writes ------------------------------------------------------------

    async def dry_run(self, sql: str) -> DryRunResult:
        """Preview a write statement without changing the database.

        INSERT, UPDATE and DELETE run inside a transaction that is always
        rolled back. DDL and other statements are never executed, since
        several databases commit DDL implicitly; they get a parse check only.
        """
        operation = detect_operation_type(sql)
        if not operation.is_write:
            return self._check_without_executing(sql, operation)

        async with self._lock:
            try:
                connection = await self._conn()
            except DatabaseError as exc:
                return DryRunResult(is_valid=False, errors=[str(exc)], message=str(exc))
            try:
                async with connection.cursor() as cursor:
                    await asyncio.wait_for(cursor.execute(sql), self._timeout)
                    affected = cursor.rowcount
            except Exception as exc:
                logger.warning("Dry run failed on '%s': %s", self.database_id, exc)
                return DryRunResult(is_valid=False, errors=[str(exc)], message=str(exc))
            finally:
                await connection.rollback()

        estimated = affected if affected is not None and affected >= 0 else None
        warnings = []
        if estimated is not None and estimated > 1000:
            warnings.append(f"Statement would affect {estimated} rows")
        return DryRunResult(
            is_valid=True,
            estimated_rows=estimated,
            warnings=warnings,
            message="Dry run succeeded; changes were rolled back",
        )

    def _check_without_executing(self, sql: str, operation: SqlOperationType) -> DryRunResult:
        syntax = validate_syntax(sql, self._dialect)
        if not syntax.is_valid:
            return DryRunResult(
                is_valid=False, errors=syntax.errors, message="; ".join(syntax.errors)
            )
        if operation.is_ddl:
            warning = "DDL statements cannot be fully validated without execution"
        else:
            warning = f"{operation.value} statements cannot be fully validated without execution"
        logger.info("Dry run on '%s' skipped execution of %s", self.database_id, operation.value)
        return DryRunResult(
            is_valid=True,
            warnings=[warning],
            message="Statement parsed; not executed",
        )

    async def execute_update(self, sql: str) -> UpdateResult:
        logger.info("Executing write on '%s': %s", self.database_id, sql[:200])
        async with self._lock:
            connection = await self._conn()
            try:
                async with connection.cursor() as cursor:
                    await asyncio.wait_for(cursor.execute(sql), self._timeout)
                    affected = max(cursor.rowcount, 0)
                await connection.commit()
            except Exception as exc:
                await connection.rollback()
                logger.error("Write failed on '%s': %s", self.database_id, exc)
                return UpdateResult(success=False, message=str(exc))
        return UpdateResult(success=True, affected_rows=affected, message="Committed")
