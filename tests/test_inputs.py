# =============================================================================
# Unit Tests — Input Loading, Output Writing & Settings Paths
# =============================================================================

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import BaseModel

from agentic_patterns.config import Settings
from agentic_patterns.services.inputs import InputError, load_input, read_text, write_output


class Example(BaseModel):
    name: str
    count: int = 1


class TestLoadInput:
    def test_valid(self, tmp_path):
        path = tmp_path / "in.json"
        path.write_text('{"name": "demo", "count": 3}', encoding="utf-8")
        assert load_input(path, Example) == Example(name="demo", count=3)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "in.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InputError, match="not valid JSON"):
            load_input(path, Example)

    def test_missing_field(self, tmp_path):
        path = tmp_path / "in.json"
        path.write_text('{"count": 3}', encoding="utf-8")
        with pytest.raises(InputError, match="Invalid input"):
            load_input(path, Example)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_input(tmp_path / "absent.json", Example)


class TestReadText:
    def test_strips(self, tmp_path):
        path = tmp_path / "q.txt"
        path.write_text("  What happened?\n", encoding="utf-8")
        assert read_text(path) == "What happened?"

    def test_empty_raises(self, tmp_path):
        path = tmp_path / "q.txt"
        path.write_text("\n  \n", encoding="utf-8")
        with pytest.raises(InputError, match="empty"):
            read_text(path)


class TestWriteOutput:
    def test_creates_parent_dirs(self, tmp_path):
        target = tmp_path / "out" / "deep" / "report.md"
        assert write_output(target, "# hi\n") == target
        assert target.read_text(encoding="utf-8") == "# hi\n"


class TestSettingsPaths:
    def test_paths_follow_data_dir(self):
        s = Settings(data_dir=Path("/tmp/work"))
        assert s.inputs_dir == Path("/tmp/work/inputs")
        assert s.output_dir == Path("/tmp/work/output")
        assert s.vector_index_dir == Path("/tmp/work/rag/vector_index")
        assert s.database_dir == Path("/tmp/work/planning/database")

    def test_shipped_inputs_exist(self):
        inputs = Path(__file__).resolve().parent.parent / "data" / "inputs"
        for name in (
            "chaining.json", "routing.json", "parallelization.txt",
            "reflection.json", "tool_use.json", "planning.json", "rag.txt",
        ):
            assert (inputs / name).is_file(), name
