# =============================================================================
# Example Inputs & Outputs — data/inputs and data/outputs
# =============================================================================
#
# Each example reads its input from data/inputs and validates it against
# a pydantic model. Results are written as JSON to data/outputs.
# =============================================================================

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class InputError(ValueError):
    """An input file is malformed or misses required fields."""


def load_input(path: Path, model: type[T]) -> T:
    """
    Read a JSON input file and validate it against `model`.

    Raises:
        FileNotFoundError: If the file does not exist.
        InputError: If the file is not JSON or required fields are missing.
    """
    path = Path(path)
    raw = path.read_text(encoding="utf-8")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InputError(f"{path} is not valid JSON: {e}") from e

    try:
        parsed = model.model_validate(data)
    except ValidationError as e:
        raise InputError(f"Invalid input in {path}: {e}") from e

    logger.info("Loaded %s", path)
    return parsed


def read_text(path: Path) -> str:
    """Read a UTF-8 text input, stripped. Empty files raise InputError."""
    path = Path(path)
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        raise InputError(f"{path} is empty")
    return text


def write_output(path: Path, content: str) -> Path:
    """Write `content` to `path`, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Wrote %s (%d chars)", path, len(content))
    return path
