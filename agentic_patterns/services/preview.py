# =============================================================================
# Result Preview — Truncated JSON of Query Results for Model Context
# =============================================================================
#
# Query results go back into the prompt, so they are cut to a fixed
# number of characters with a marker noting the truncation.
# =============================================================================

from __future__ import annotations

import json
from typing import Any

# Results up to this size are shown in full.
MAX_FULL_ITEMS = 5
# Larger results show only this many leading items plus a count line.
HEAD_ITEMS = 3


def to_json(value: Any) -> str:
    """Pretty JSON with non-ASCII kept and unknown types stringified."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def build_preview_json(rows: Any) -> str:
    """
    Build the preview shown to the planner instead of the full data.

    - A non-list value is wrapped in a one-element list.
    - Up to MAX_FULL_ITEMS items are shown in full.
    - Longer lists show the first HEAD_ITEMS items followed by a
      "   ... N more items" line before the closing bracket.
    """
    if not isinstance(rows, list):
        return to_json([rows])
    if len(rows) <= MAX_FULL_ITEMS:
        return to_json(rows)

    head = to_json(rows[:HEAD_ITEMS])
    remaining = len(rows) - HEAD_ITEMS
    return head[: -len("\n]")] + f",\n   ... {remaining} more items\n]"
