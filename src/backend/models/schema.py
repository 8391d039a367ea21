"""
Database schema models.

Schemas are read-only snapshots fetched from a database connection
once per query turn. Name lookups are case-insensitive throughout.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ColumnSchema(BaseModel):
    """A single column of a table."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Column name as reported by the database")
    type: str = Field(default="", description="Database type name, e.g. 'VARCHAR'")
    nullable: bool = Field(default=True)
    is_primary_key: bool = Field(default=False)
    is_foreign_key: bool = Field(default=False)
    comment: str | None = Field(default=None, description="Column comment / remarks")

    def describe(self) -> str:
        """Return ``name (TYPE, PK)`` style text for prompts."""
        flags = [self.type] if self.type else []
        if self.is_primary_key:
            flags.append("PK")
        if self.is_foreign_key:
            flags.append("FK")
        return f"{self.name} ({', '.join(flags)})" if flags else self.name


class TableSchema(BaseModel):
    """A table and its ordered columns."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Table name as reported by the database")
    comment: str | None = Field(default=None, description="Table comment / remarks")
    columns: list[ColumnSchema] = Field(default_factory=list)

    def get_column(self, name: str) -> ColumnSchema | None:
        """Find a column by name, ignoring case."""
        lowered = name.lower()
        return next((c for c in self.columns if c.name.lower() == lowered), None)

    def describe(self) -> str:
        """Return a two- or three-line description of the table.

        Example::

            Table: orders
            Comment: Customer orders
            Columns: id (INT, PK), customer_id (INT, FK), total (DECIMAL)
        """
        lines = [f"Table: {self.name}"]
        if self.comment:
            lines.append(f"Comment: {self.comment}")
        lines.append(f"Columns: {', '.join(c.describe() for c in self.columns)}")
        return "\n".join(lines)


class DatabaseSchema(BaseModel):
    """An ordered collection of tables for one database."""

    model_config = ConfigDict(frozen=True)

    database_name: str | None = Field(default=None, description="Display name of the database")
    tables: list[TableSchema] = Field(default_factory=list)

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> TableSchema | None:
        """Find a table by name, ignoring case."""
        lowered = name.lower()
        return next((t for t in self.tables if t.name.lower() == lowered), None)

    def subset(self, table_names: list[str]) -> DatabaseSchema:
        """Return a schema containing only ``table_names``, in schema order."""
        wanted = {n.lower() for n in table_names}
        return self.model_copy(
            update={"tables": [t for t in self.tables if t.name.lower() in wanted]}
        )

    def describe(self) -> str:
        """Return a prompt-ready description of every table."""
        return "\n\n".join(t.describe() for t in self.tables)


class MergedSchema(BaseModel):
    """Schemas from several databases keyed by database identifier.

    Insertion order of ``databases`` is the order databases were
    configured; it is preserved in prompts and in combined results.
    """

    databases: dict[str, DatabaseSchema] = Field(default_factory=dict)

    @property
    def total_table_count(self) -> int:
        return sum(len(s.tables) for s in self.databases.values())

    def get_tables_for_database(self, database: str) -> list[TableSchema]:
        schema = self.databases.get(database)
        return list(schema.tables) if schema else []
