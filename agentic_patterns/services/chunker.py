# =============================================================================
# Semantic Chunker — Meaning-Based Splitting with tiktoken Bounds
# =============================================================================
#
# Splits raw text into chunks by meaning rather than by fixed windows.
# Consecutive sentences are merged while they stay on the same topic,
# measured by cosine similarity between the next sentence's embedding and
# the running chunk centroid.
#
# ALGORITHM:
# 1. Split text into sentences (punctuation + paragraph breaks)
# 2. Embed every sentence in one batched call
# 3. Walk sentences in order; extend the current chunk while
#      cos(centroid, sentence) >= similarity_threshold
#      and the chunk stays within max_tokens (tiktoken cl100k_base)
#    otherwise start a new chunk
# 4. Embed each final chunk text so the index stores one vector per chunk
#
# DESIGN DECISION: The embedding function is injected. The RAG example
# passes services.embedder.embed_batch; tests pass a deterministic fake.
#
# DESIGN DECISION: Token bound on top of the similarity rule. A long
# single-topic passage would otherwise become one chunk larger than the
# embedding model accepts.
# =============================================================================

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np
import tiktoken

logger = logging.getLogger(__name__)

EmbedFunction = Callable[[Sequence[str]], list[list[float]]]


@dataclass
class SemanticChunk:
    """A chunk of text ready for indexing."""

    text: str
    embedding: list[float]
    token_count: int


# ---------------------------------------------------------------------------
# Tiktoken Encoder — Cached Singleton
# ---------------------------------------------------------------------------
# cl100k_base is the encoding for text-embedding-3-small, so token counts
# match what the embedding model actually sees.
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def count_tokens(text: str) -> int:
    return len(_get_encoder().encode(text))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+|\n\s*\n")


def split_sentences(text: str) -> list[str]:
    """
    Split text into sentences.

    Breaks after ".", "!" or "?" followed by whitespace, and on blank
    lines. Whitespace inside a sentence is collapsed to single spaces.
    """
    sentences = []
    for part in _SENTENCE_BOUNDARY.split(text):
        sentence = " ".join(part.split())
        if sentence:
            sentences.append(sentence)
    return sentences


def semantic_chunks(
    text: str,
    embed_fn: EmbedFunction,
    similarity_threshold: float = 0.6,
    max_tokens: int = 512,
) -> list[SemanticChunk]:
    """
    Split text into semantically coherent chunks.

    Args:
        text: Raw text to split.
        embed_fn: Batch embedding function (texts → vectors, same order).
        similarity_threshold: Minimum cosine similarity for a sentence to
            join the current chunk.
        max_tokens: Hard upper bound on tokens per chunk. Sentences longer
            than this are split on token boundaries first.

    Returns:
        Chunks in document order, each with its own embedding.
    """
    sentences = [
        piece
        for sentence in split_sentences(text)
        for piece in _split_oversized(sentence, max_tokens)
    ]
    if not sentences:
        return []

    vectors = _normalise(np.asarray(embed_fn(sentences), dtype=float))
    token_counts = [count_tokens(s) for s in sentences]

    groups: list[list[int]] = [[0]]
    group_tokens = token_counts[0]
    centroid = vectors[0]

    for i in range(1, len(sentences)):
        similarity = float(np.dot(centroid, vectors[i]))
        # +1 accounts for the joining space
        fits = group_tokens + token_counts[i] + 1 <= max_tokens

        if similarity >= similarity_threshold and fits:
            groups[-1].append(i)
            group_tokens += token_counts[i] + 1
            centroid = _normalise(vectors[groups[-1]].mean(axis=0))
        else:
            groups.append([i])
            group_tokens = token_counts[i]
            centroid = vectors[i]

    chunk_texts = [" ".join(sentences[i] for i in group) for group in groups]
    chunk_vectors = embed_fn(chunk_texts)

    logger.info(
        "Semantic chunking: %d sentences → %d chunks (threshold=%.2f)",
        len(sentences), len(chunk_texts), similarity_threshold,
    )

    return [
        SemanticChunk(
            text=chunk_text,
            embedding=list(vector),
            token_count=count_tokens(chunk_text),
        )
        for chunk_text, vector in zip(chunk_texts, chunk_vectors, strict=True)
    ]


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _normalise(vectors: np.ndarray) -> np.ndarray:
    """L2-normalise a vector or each row of a matrix (zero rows stay zero)."""
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    norms[norms == 0] = 1.0
    return vectors / norms


def _split_oversized(sentence: str, max_tokens: int) -> list[str]:
    """Cut a sentence longer than max_tokens on token boundaries."""
    encoder = _get_encoder()
    tokens = encoder.encode(sentence)
    if len(tokens) <= max_tokens:
        return [sentence]
    pieces = []
    for start in range(0, len(tokens), max_tokens):
        piece = encoder.decode(tokens[start : start + max_tokens]).strip()
        if piece:
            pieces.append(piece)
    return pieces
