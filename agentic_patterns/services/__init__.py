# =============================================================================
# Services Package — Shared Building Blocks
# =============================================================================
# Helpers every pattern example builds on:
#   - llm.py: Model handles (Anthropic, OpenAI-compatible), tool loops,
#     progress indicator logging
#   - structured.py: Pydantic-validated JSON object generation
#   - pricing.py: Per-token cost registry for call logging
#   - embedder.py: OpenAI embedding generation (batch processing)
#   - chunker.py: Semantic chunking with tiktoken bounds
#   - vectorstore.py: File-based Chroma vector index
#   - download.py: HTTP downloads with skip-if-exists
#   - database.py: Read-only SQLite datasets via SQLAlchemy
#   - preview.py: Truncated JSON previews of query results
#   - inputs.py: Input validation and output writing
# =============================================================================
