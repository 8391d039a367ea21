"""LLM schema linker.

Asks the completion service which tables and columns a query needs,
then keeps only names that really exist in the schema. Any failure
delegates to the fallback linker.
"""

from __future__ import annotations

import logging

from entities.shared.llm_response import as_string_list, clamp_confidence, parse_json_object
from entities.shared.protocols import DatabaseConnection, SchemaLinker, TextCompletionService
from models import DatabaseSchema, LinkingResult, TableSchema

logger = logging.getLogger(__name__)

KEYWORD_EXTRACTION_PROMPT = """You are a database schema expert. Extract keywords from the user's natural language query that are relevant for finding database tables and columns.

Given the user query, extract:
1. Entity names (nouns that might be table names)
2. Attribute names (properties that might be column names)
3. Semantic synonyms (alternative terms for the same concept)

Respond ONLY with a JSON object in this exact format:
{"keywords": ["keyword1", "keyword2", ...], "entities": ["entity1", ...], "attributes": ["attr1", ...]}

User Query: """

SCHEMA_LINKING_PROMPT = """You are a database schema expert. Given a user query and database schema with sample data, identify the most relevant tables and columns.

CRITICAL RULES:
1. You MUST only use table and column names that EXACTLY exist in the provided schema
2. Do NOT invent or hallucinate table/column names
3. Look at the sample data to understand what each table contains
4. Match user's intent with the actual table/column names, not assumed names

Database Schema with Sample Data:
{{SCHEMA}}

User Query: {{QUERY}}

Respond ONLY with a JSON object in this exact format:
{"tables": ["table1", "table2"], "columns": ["table1.column1", "table2.column2"], "confidence": 0.8}

Only include tables and columns that are directly relevant to answering the query."""


async def describe_table_with_samples(
    table: TableSchema,
    connection: DatabaseConnection | None,
    sample_rows: int,
    cell_max_chars: int,
) -> str:
    """Describe ``table`` for a linking prompt, with sample rows when possible.

    Sample fetch failures are logged and noted in the text; they never
    abort the description.
    """
    lines = [
        f"Table: {table.name}",
        f"  Columns: {', '.join(f'{c.name}({c.type})' for c in table.columns)}",
    ]
    if table.comment:
        lines.append(f"  Comment: {table.comment}")
    if connection is None or sample_rows <= 0:
        return "\n".join(lines)

    try:
        samples = await connection.get_sample_rows(table.name, sample_rows)
    except Exception as exc:
        logger.warning("No sample rows for %s: %s", table.name, exc)
        lines.append("  (No sample data available)")
        return "\n".join(lines)

    if not samples.is_empty:
        lines.append("  Sample Data:")
        lines.append(f"    {' | '.join(samples.columns)}")
        for row in samples.rows[:sample_rows]:
            lines.append(f"    {' | '.join(cell[:cell_max_chars] for cell in row)}")
    return "\n".join(lines)


def resolve_table_names(names: list[str], schema: DatabaseSchema) -> list[str]:
    """Map LLM-returned table names onto the schema's spelling.

    Unknown names are dropped; duplicates collapse to the first occurrence.
    """
    resolved: list[str] = []
    for name in names:
        table = schema.get_table(name)
        if table is not None and table.name not in resolved:
            resolved.append(table.name)
    return resolved


def resolve_column_refs(refs: list[str], schema: DatabaseSchema, tables: list[str]) -> list[str]:
    """Keep ``table.column`` references whose table is in ``tables`` and
    whose column exists."""
    resolved: list[str] = []
    allowed = {t.lower() for t in tables}
    for ref in refs:
        table_name, sep, column_name = ref.rpartition(".")
        if not sep or table_name.lower() not in allowed:
            continue
        table = schema.get_table(table_name)
        column = table.get_column(column_name) if table else None
        if table is None or column is None:
            continue
        qualified = f"{table.name}.{column.name}"
        if qualified not in resolved:
            resolved.append(qualified)
    return resolved


class LlmLinker:
    """Linker that delegates table selection to the completion service.

    Args:
        completion: Text-completion backend.
        fallback: Linker used when the LLM call fails or returns nothing
            usable.
        connection: Optional connection used to add sample rows to the
            schema description.
        sample_rows: Sample rows per table.
        cell_max_chars: Sample cells are cut to this length.
    """

    strategy = "llm"

    def __init__(
        self,
        completion: TextCompletionService,
        fallback: SchemaLinker,
        connection: DatabaseConnection | None = None,
        sample_rows: int = 2,
        cell_max_chars: int = 30,
    ) -> None:
        self._completion = completion
        self._fallback = fallback
        self._connection = connection
        self._sample_rows = sample_rows
        self._cell_max_chars = cell_max_chars

    async def link(self, query: str, schema: DatabaseSchema) -> LinkingResult:
        try:
            descriptions = [
                await describe_table_with_samples(
                    table, self._connection, self._sample_rows, self._cell_max_chars
                )
                for table in schema.tables
            ]
            prompt = (
                SCHEMA_LINKING_PROMPT
                .replace("{{SCHEMA}}", "\n".join(descriptions))
                .replace("{{QUERY}}", query)
            )
            response = await self._completion.send_prompt(prompt)
            parsed = parse_json_object(response)

            tables = resolve_table_names(as_string_list(parsed.get("tables")), schema)
            if not tables:
                logger.warning("LLM linking returned no known tables; falling back")
                return await self._fallback.link(query, schema)

            columns = resolve_column_refs(as_string_list(parsed.get("columns")), schema, tables)
            keywords = await self._fallback.extract_keywords(query)

            logger.info("LLM linking: %d tables, %d columns", len(tables), len(columns))
            return LinkingResult(
                relevant_tables=tables,
                relevant_columns=columns,
                keywords=keywords,
                confidence=clamp_confidence(parsed.get("confidence"), 0.5),
                strategy=self.strategy,
            )
        except Exception:
            logger.exception("LLM schema linking failed; falling back")
            return await self._fallback.link(query, schema)

    async def extract_keywords(self, query: str) -> list[str]:
        """Ask the LLM for keywords, entities and attributes.

        Returns:
            Their union in response order without duplicates, or the
            fallback's keywords when the call fails or yields nothing.
        """
        try:
            response = await self._completion.send_prompt(KEYWORD_EXTRACTION_PROMPT + query)
            parsed = parse_json_object(response)
            keywords: list[str] = []
            for key in ("keywords", "entities", "attributes"):
                for word in as_string_list(parsed.get(key)):
                    if word not in keywords:
                        keywords.append(word)
            if keywords:
                return keywords
        except Exception:
            logger.exception("LLM keyword extraction failed; falling back")
        return await self._fallback.extract_keywords(query)
