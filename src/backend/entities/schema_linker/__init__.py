"""Schema linker package: selects the tables a query needs."""

from .chain import apply_small_schema_policy, build_linker_chain, make_keyword_extractor
from .content import ContentLinker, filter_user_tables, is_system_table
from .keyword import KeywordLinker, fuzzy_match, levenshtein_distance
from .llm import LlmLinker

__all__ = [
    "ContentLinker",
    "KeywordLinker",
    "LlmLinker",
    "apply_small_schema_policy",
    "build_linker_chain",
    "filter_user_tables",
    "fuzzy_match",
    "is_system_table",
    "levenshtein_distance",
    "make_keyword_extractor",
]
