"""
Entities package.

Each subdirectory is one stage of the NL2SQL pipeline:
- tokenizer/: Mixed-language tokenization and RAKE keyword extraction
- schema_linker/: Keyword, LLM and content-aware schema linking strategies
- sql_generator/: Schema-grounded SQL generation and fence parsing
- query_validator/: Syntax and table-whitelist validation
- sql_reviser/: Bounded LLM self-correction of failing SQL
- nl2sql_controller/: Execution orchestrator (approval, dry run, retries)
- workflow/: Production client wiring
- shared/: Protocols, adapters and helpers used across stages
"""
