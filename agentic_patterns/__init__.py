# =============================================================================
# Agentic Workflow Patterns
# =============================================================================
# Example programs showing how to sequence LLM calls in common shapes:
# prompt chaining, routing, parallelization, reflection, tool use,
# planning and retrieval-augmented generation.
#
# Package structure:
#   agentic_patterns/
#   ├── agents/     → one module per pattern, each with an async main()
#   ├── services/   → shared building blocks (model handles, embeddings,
#   │                  vector index, SQLite, downloads, previews)
#   ├── config.py   → Pydantic Settings
#   └── cli.py      → `agentic-patterns` command
# =============================================================================

__version__ = "0.1.0"
