# =============================================================================
# Unit Tests — Command-Line Interface
# =============================================================================

from __future__ import annotations

from pathlib import Path

import pytest

from agentic_patterns import cli
from agentic_patterns.config import settings


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path)
    for path in (settings.vector_index_dir, settings.database_dir, settings.output_dir):
        path.mkdir(parents=True)
        (path / "marker").write_text("x", encoding="utf-8")
    return tmp_path


class TestParser:
    def test_run_with_query(self):
        args = cli.build_parser().parse_args(["run", "rag", "--query", "jobs?"])
        assert args.command == "run"
        assert args.pattern == "rag"
        assert args.query == "jobs?"

    def test_unknown_pattern_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["run", "teleport"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestClean:
    def test_default_removes_only_vector_index(self, data_dir):
        removed = cli.clean()
        assert removed == [settings.vector_index_dir]
        assert not settings.vector_index_dir.exists()
        assert settings.database_dir.exists()
        assert settings.output_dir.exists()

    def test_all_removes_everything_generated(self, data_dir):
        cli.clean(include_all=True)
        assert not settings.vector_index_dir.exists()
        assert not settings.database_dir.exists()
        assert not settings.output_dir.exists()

    def test_nothing_to_clean(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "data_dir", tmp_path)
        assert cli.clean(include_all=True) == []


class TestMain:
    def test_list(self, capsys):
        assert cli.main(["list"]) == 0
        out = capsys.readouterr().out
        for name in cli.PATTERNS:
            assert name in out

    def test_failing_pattern_returns_one(self, tmp_path):
        missing = tmp_path / "missing.json"
        assert cli.main(["run", "tool-use", "--input", str(missing)]) == 1

    def test_clean_command(self, data_dir):
        assert cli.main(["clean"]) == 0
        assert not settings.vector_index_dir.exists()


PACKAGE_DIR = Path(cli.__file__).parent
BANNER = "# " + "=" * 77


@pytest.mark.parametrize(
    "path",
    sorted(p for p in PACKAGE_DIR.rglob("*.py") if p.name != "__main__.py"),
    ids=lambda p: str(p.relative_to(PACKAGE_DIR)),
)
def test_module_opens_with_banner_header(path):
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == BANNER
    assert lines[1].startswith("# ")
    assert lines[2] == BANNER
