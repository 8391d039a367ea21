"""
NL2SQL Workflow - wiring for query processing.

``PipelineClients`` / ``create_pipeline_clients`` provide dependency
injection; ``execute`` (re-exported lazily from the controller) runs one
query turn against them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .clients import ChatAgentCompletionService, PipelineClients, create_pipeline_clients

if TYPE_CHECKING:
    from entities.nl2sql_controller.pipeline import execute as execute


def __getattr__(name: str) -> object:
    """Lazily import ``execute`` to avoid circular imports."""
    if name == "execute":
        from entities.nl2sql_controller.pipeline import execute  # noqa: PLC0415

        return execute
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ChatAgentCompletionService",
    "PipelineClients",
    "create_pipeline_clients",
    "execute",
]
