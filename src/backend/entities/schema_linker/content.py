"""Database-content schema linker.

Drops system tables, shows the LLM every remaining table with a few
sample rows, and asks which tables the query needs.
"""

from __future__ import annotations

import logging

from entities.shared.llm_response import as_string_list, clamp_confidence, parse_json_object
from entities.shared.protocols import DatabaseConnection, SchemaLinker, TextCompletionService
from models import DatabaseSchema, LinkingResult, TableSchema

from .keyword import KeywordLinker
from .llm import describe_table_with_samples, resolve_table_names

logger = logging.getLogger(__name__)

SYSTEM_TABLE_PREFIXES: tuple[str, ...] = (
    "sys_", "x$", "innodb_", "io_", "memory_", "schema_", "statement",
    "user_summary", "host_summary", "wait", "process", "session",
    "metrics", "privileges", "ps_", "flyway_", "hibernate_",
)

SYSTEM_TABLE_NAMES: frozenset[str] = frozenset({
    "version", "latest_file_io", "session_ssl_status",
})

TABLES_WITH_SAMPLES_PROMPT = """You are a database schema expert. Given a user query and database tables with sample data, identify the most relevant tables.

CRITICAL RULES:
1. ONLY select tables from the provided list - do NOT invent table names
2. Look at sample data to understand what each table actually contains
3. Match the user's semantic intent, not just keywords
4. For "文章/article/post" queries, look for tables containing blog/post content
5. For "作者/author/creator" queries, look for tables with author/creator information

Available Tables with Sample Data:
{{TABLES_WITH_SAMPLES}}

User Query: {{QUERY}}

Respond ONLY with a JSON object:
{"tables": ["table1", "table2"], "reason": "brief explanation", "confidence": 0.9}

Select ONLY tables that are directly needed to answer the query."""


def is_system_table(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith(SYSTEM_TABLE_PREFIXES) or lowered in SYSTEM_TABLE_NAMES


def filter_user_tables(schema: DatabaseSchema) -> list[TableSchema]:
    return [t for t in schema.tables if not is_system_table(t.name)]


class ContentLinker:
    """Sample-data-aware linker at the head of the chain.

    Args:
        completion: Text-completion backend.
        connection: Connection the sample rows are read from.
        fallback: Linker used on failure (normally the ``LlmLinker``).
        keyword_linker: Source of the keywords reported with a successful
            link, so no second LLM call is made for them.
        sample_rows: Sample rows per table.
        cell_max_chars: Sample cells are cut to this length.
    """

    strategy = "content"

    def __init__(
        self,
        completion: TextCompletionService,
        connection: DatabaseConnection,
        fallback: SchemaLinker,
        keyword_linker: KeywordLinker | None = None,
        sample_rows: int = 2,
        cell_max_chars: int = 30,
    ) -> None:
        self._completion = completion
        self._connection = connection
        self._fallback = fallback
        self._keyword_linker = keyword_linker or KeywordLinker()
        self._sample_rows = sample_rows
        self._cell_max_chars = cell_max_chars

    async def link(self, query: str, schema: DatabaseSchema) -> LinkingResult:
        try:
            user_tables = filter_user_tables(schema)
            if not user_tables:
                return await self._fallback.link(query, schema)

            descriptions = [
                await describe_table_with_samples(
                    table, self._connection, self._sample_rows, self._cell_max_chars
                )
                for table in user_tables
            ]
            prompt = (
                TABLES_WITH_SAMPLES_PROMPT
                .replace("{{TABLES_WITH_SAMPLES}}", "\n".join(descriptions))
                .replace("{{QUERY}}", query)
            )
            response = await self._completion.send_prompt(prompt)
            parsed = parse_json_object(response)

            user_schema = schema.subset([t.name for t in user_tables])
            tables = resolve_table_names(as_string_list(parsed.get("tables")), user_schema)
            if not tables:
                logger.warning("Content linking returned no known tables; falling back")
                return await self._fallback.link(query, schema)

            logger.info(
                "Content linking: %s (reason: %s)", tables, str(parsed.get("reason", ""))[:200]
            )
            return LinkingResult(
                relevant_tables=tables,
                relevant_columns=[],
                keywords=self._keyword_linker.keywords_for(query),
                confidence=clamp_confidence(parsed.get("confidence"), 0.5),
                strategy=self.strategy,
            )
        except Exception:
            logger.exception("Content schema linking failed; falling back")
            return await self._fallback.link(query, schema)

    async def extract_keywords(self, query: str) -> list[str]:
        return await self._fallback.extract_keywords(query)
