"""SQL Reviser package: bounded LLM self-correction of failing SQL."""

from .reviser import RevisionCounter, build_revision_context, extract_sql, revise_sql

__all__ = ["RevisionCounter", "build_revision_context", "extract_sql", "revise_sql"]
