# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# All examples read their knobs from one `Settings` object. Values load in
# this priority order (highest first):
#   1. Environment variables (e.g., `ADVANCED_MODEL_ID=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from agentic_patterns.config import settings
#   print(settings.concurrency_limit)
# =============================================================================

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    Defaults run every example locally once the two provider API keys
    are set.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Agentic Workflow Patterns"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Keys — External Services
    # -------------------------------------------------------------------------
    # ANTHROPIC_API_KEY: Claude models (advanced model by default)
    # OPENAI_API_KEY: GPT models (basic model) and embeddings
    # LLM_API_KEY: optional shared key, overrides both when set
    # -------------------------------------------------------------------------
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    llm_api_key: str | None = None

    # -------------------------------------------------------------------------
    # Model Handles
    # -------------------------------------------------------------------------
    # Provider ids use the "provider_type/model[@base_url]" format parsed by
    # services.llm.create_provider_from_id(). Two handles are shared by all
    # examples: a cheap "basic" model for bulk work (filters, votes, drafts)
    # and a stronger "advanced" model for planning and synthesis.
    # -------------------------------------------------------------------------
    basic_model_id: str = "openai_compatible/gpt-5-nano"
    basic_model_label: str = "GPT-5-nano"
    advanced_model_id: str = "anthropic/claude-haiku-4-5"
    advanced_model_label: str = "Claude-4.5-Haiku"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 8192
    show_progress_indicators: bool = True

    # -------------------------------------------------------------------------
    # Embedding Configuration
    # -------------------------------------------------------------------------
    embedding_model: str = "text-embedding-3-small"
    embedding_base_url: str | None = None
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 100

    # -------------------------------------------------------------------------
    # Filesystem Layout
    # -------------------------------------------------------------------------
    # data/inputs/   → example input files (tracked in git)
    # data/output/   → generated reports and dashboards
    # data/rag/      → persistent vector index
    # data/planning/ → downloaded SQLite datasets
    # -------------------------------------------------------------------------
    data_dir: Path = Path("data")

    # -------------------------------------------------------------------------
    # Parallel Loops
    # -------------------------------------------------------------------------
    # Upper bound on in-flight model calls for a single parallel loop
    # (relevance filtering, sectioned review, voting).
    # -------------------------------------------------------------------------
    concurrency_limit: int = 20

    # -------------------------------------------------------------------------
    # RAG Example
    # -------------------------------------------------------------------------
    rag_source_url: str = (
        "https://huggingface.co/datasets/rewoo/sotu_qa_2023/resolve/main/"
        "state_of_the_union.txt"
    )
    rag_index_name: str = "sotu_index"
    rag_similarity_threshold: float = 0.6
    rag_chunk_max_tokens: int = 512
    rag_top_k: int = 20
    rag_min_source_length: int = 1000

    # -------------------------------------------------------------------------
    # Planning Example
    # -------------------------------------------------------------------------
    planner_max_steps: int = 32

    # -------------------------------------------------------------------------
    # Reflection & Parallelization Examples
    # -------------------------------------------------------------------------
    reflection_max_iterations: int = 3
    voting_count: int = 5

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Derived Paths
    # -------------------------------------------------------------------------

    @property
    def inputs_dir(self) -> Path:
        return self.data_dir / "inputs"

    @property
    def output_dir(self) -> Path:
        return self.data_dir / "output"

    @property
    def vector_index_dir(self) -> Path:
        return self.data_dir / "rag" / "vector_index"

    @property
    def database_dir(self) -> Path:
        return self.data_dir / "planning" / "database"


settings = Settings()
