# =============================================================================
# Agentic RAG — Semantic Index + LLM Relevance Filter + Grounded Answer
# =============================================================================
#
# PHASE 1 — INDEXING (runs once, result persisted on disk):
#   download State of the Union text → semantic chunking → embed →
#   insert into the local vector index
#
# PHASE 2 — QUERY:
#   1. RETRIEVE — broad top-k cosine search (default 20 candidates)
#   2. FILTER — the basic model reads every candidate in parallel and
#      decides whether it actually helps answer the query
#   3. SYNTHESISE — the advanced model answers from verified chunks only
#
# The filter is the "agentic" step: vector search finds passages that
# LOOK similar (applause lines, pleasantries) and the relevance check
# discards those that do not carry information for the question.
#
# DESIGN DECISION: A failed relevance call counts as "not relevant".
# One flaky call out of twenty should not abort the answer.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from agentic_patterns.agents.parallelization import map_concurrently
from agentic_patterns.config import settings
from agentic_patterns.services.chunker import EmbedFunction, semantic_chunks
from agentic_patterns.services.download import fetch_text
from agentic_patterns.services.embedder import embed_batch, embed_query
from agentic_patterns.services.inputs import read_text
from agentic_patterns.services.llm import (
    LLMProvider,
    get_advanced_model,
    get_basic_model,
)
from agentic_patterns.services.structured import generate_object
from agentic_patterns.services.vectorstore import LocalVectorIndex

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class RelevanceCheck(BaseModel):
    """Verdict of the relevance filter for one chunk."""

    model_config = ConfigDict(populate_by_name=True)

    reasoning: str = Field(
        description="Short explanation of why this is or is not relevant",
    )
    is_relevant: bool = Field(alias="isRelevant")


class RAGStats(BaseModel):
    found: int
    verified: int


class RAGResult(BaseModel):
    query: str
    stats: RAGStats
    answer: str


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

RELEVANCE_PROMPT = """We are answering the query: "{query}"

Does the following text chunk contain specific information useful for \
answering this query?
Ignore chunks that only contain general pleasantries, applause, or \
unrelated topics.

CHUNK:
{chunk_text}"""

SYNTHESIS_PROMPT = """Answer the question based ONLY on the provided context.
If the context is empty or insufficient, state that you don't have enough \
information.

QUESTION: {query}

VERIFIED CONTEXT:
{context}

ANSWER:"""

NO_CONTEXT_ANSWER = (
    "I don't have enough information to answer this question: none of the "
    "retrieved passages were relevant."
)


# ---------------------------------------------------------------------------
# Phase 1: Indexing
# ---------------------------------------------------------------------------


def get_index() -> LocalVectorIndex:
    return LocalVectorIndex(settings.vector_index_dir, settings.rag_index_name)


def run_indexing(
    index: LocalVectorIndex,
    embed_fn: EmbedFunction = embed_batch,
    fetch: Callable[..., str] = fetch_text,
) -> int:
    """
    Build the vector index unless it already exists.

    Returns:
        Number of chunks indexed (0 when the existing index was reused).

    Raises:
        DownloadError: If the source text cannot be downloaded or is
            shorter than settings.rag_min_source_length.
    """
    if index.is_index_created():
        logger.info("Vector index found. Skipping build.")
        return 0

    logger.info("Downloading State of the Union...")
    full_text = fetch(
        settings.rag_source_url, min_length=settings.rag_min_source_length,
    )

    index.create_index()

    logger.info("Chunking text semantically...")
    chunks = semantic_chunks(
        full_text,
        embed_fn,
        similarity_threshold=settings.rag_similarity_threshold,
        max_tokens=settings.rag_chunk_max_tokens,
    )

    logger.info("Adding %d chunks to the index...", len(chunks))
    index.insert_items(
        texts=[c.text for c in chunks],
        embeddings=[c.embedding for c in chunks],
    )
    logger.info("Indexed %d semantic chunks.", len(chunks))
    return len(chunks)


# ---------------------------------------------------------------------------
# Phase 2: Retrieval Agent
# ---------------------------------------------------------------------------


async def query_vector_db(
    index: LocalVectorIndex,
    query: str,
    top_k: int | None = None,
    embed_fn: Callable[[str], list[float]] = embed_query,
) -> list[str]:
    """Broad search: embed the query and return the top-k chunk texts."""
    query_vector = await asyncio.to_thread(embed_fn, query)
    results = await asyncio.to_thread(
        index.query_items, query_vector, top_k or settings.rag_top_k,
    )
    return [r.text for r in results]


async def check_relevance(llm: LLMProvider, query: str, chunk_text: str) -> bool:
    """Ask the model whether one chunk helps answer the query."""
    try:
        check = await generate_object(
            llm,
            RelevanceCheck,
            RELEVANCE_PROMPT.format(query=query, chunk_text=chunk_text),
        )
    except Exception as e:
        logger.warning("Relevance check failed, treating chunk as irrelevant: %s", e)
        return False

    logger.debug("Relevance: %s (%s)", check.is_relevant, check.reasoning)
    return check.is_relevant


async def filter_relevant(
    llm: LLMProvider,
    query: str,
    candidates: list[str],
    concurrency_limit: int | None = None,
) -> list[str]:
    """Keep only relevant candidates, in their original order."""
    verdicts = await map_concurrently(
        candidates,
        lambda text: check_relevance(llm, query, text),
        concurrency_limit or settings.concurrency_limit,
    )
    return [text for text, keep in zip(candidates, verdicts, strict=True) if keep]


async def synthesize_answer(llm: LLMProvider, query: str, chunks: list[str]) -> str:
    """Answer from verified chunks only."""
    if not chunks:
        return NO_CONTEXT_ANSWER

    context = "".join(f"---\n{text}\n" for text in chunks)
    response = await llm.complete(
        messages=[{
            "role": "user",
            "content": SYNTHESIS_PROMPT.format(query=query, context=context),
        }],
    )
    return response.content


async def run_rag_agent(
    query: str | None = None,
    index: LocalVectorIndex | None = None,
    filter_llm: LLMProvider | None = None,
    answer_llm: LLMProvider | None = None,
    input_path: Path | None = None,
    embed_fn: Callable[[str], list[float]] | None = None,
) -> RAGResult:
    """
    Retrieve → filter → synthesise.

    The query comes from `query` or, when empty, from the input file
    (default data/inputs/rag.txt).
    """
    index = index or get_index()
    filter_llm = filter_llm or get_basic_model()
    answer_llm = answer_llm or get_advanced_model()

    query_text = query or read_text(input_path or settings.inputs_dir / "rag.txt")

    candidates = await query_vector_db(
        index, query_text, embed_fn=embed_fn or embed_query,
    )
    logger.info("Retrieved %d candidates", len(candidates))

    verified = await filter_relevant(filter_llm, query_text, candidates)
    logger.info("Verified %d of %d candidates", len(verified), len(candidates))

    answer = await synthesize_answer(answer_llm, query_text, verified)

    return RAGResult(
        query=query_text,
        stats=RAGStats(found=len(candidates), verified=len(verified)),
        answer=answer,
    )


async def main(query: str | None = None, input_path: Path | None = None) -> RAGResult:
    """Entry point used by the CLI."""
    print("--- Phase 1: Knowledge Base Setup ---")
    index = get_index()
    await asyncio.to_thread(run_indexing, index)

    print("\n--- Phase 2: RAG Agent Execution ---")
    result = await run_rag_agent(query=query, index=index, input_path=input_path)

    print(f"Q: {result.query}")
    print(
        f"Stats: Retrieved {result.stats.found} candidates, "
        f"Verified {result.stats.verified} as relevant."
    )
    print(f"\nAnswer:\n{result.answer}\n")
    return result
