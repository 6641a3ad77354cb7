# =============================================================================
# SQLite Dataset — Downloaded, Read-Only Relational Source
# =============================================================================
#
# The planning example answers questions about a public SQLite database.
# The file is downloaded once into data/planning/database/<name>.db and
# then opened read-only through a SQLAlchemy engine.
#
# DESIGN DECISION: SQLite URI mode with `mode=ro`. Generated SQL comes from
# an LLM; read-only mode guarantees it cannot modify the dataset.
#
# DESIGN DECISION: exec_driver_sql() for generated queries. text() would
# treat ":word" inside string literals as bind parameters.
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from agentic_patterns.services.download import download_file

logger = logging.getLogger(__name__)


class SQLiteDataset:
    """
    A named SQLite dataset backed by a local file.

    Usage:
        with SQLiteDataset(name, description, url, data_dir) as db:
            print(db.get_schema_summary())
            rows = db.query("SELECT * FROM Artist LIMIT 5")
    """

    def __init__(
        self,
        dataset_name: str,
        dataset_description: str,
        database_url: str,
        data_dir: Path,
    ) -> None:
        self.dataset_name = dataset_name
        self.dataset_description = dataset_description
        self.database_url = database_url
        self.db_path = Path(data_dir) / f"{dataset_name}.db"
        self._engine: Engine | None = None

    def open(self) -> None:
        """Download the database if necessary and open it read-only."""
        if self._engine is not None:
            return

        if not self.db_path.exists():
            logger.info(
                'Downloading SQLite DB for dataset "%s" from %s...',
                self.dataset_name, self.database_url,
            )
        download_file(self.database_url, self.db_path)

        uri_path = self.db_path.resolve().as_posix()
        self._engine = create_engine(f"sqlite:///file:{uri_path}?mode=ro&uri=true")
        logger.info("Opened %s (read-only)", self.db_path)

    def _get_engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not opened. Call open() first.")
        return self._engine

    def get_schema_summary(self) -> str:
        """
        Concise schema summary for prompts.

        Example:
            Dataset: chinook

            Tables:

            1. Album
               - AlbumId (INTEGER, primary key)
               - Title (NVARCHAR(160))
        """
        engine = self._get_engine()
        lines = [f"Dataset: {self.dataset_name}", "", "Tables:", ""]

        with engine.connect() as conn:
            tables = conn.exec_driver_sql(
                "SELECT name FROM sqlite_master WHERE type='table' "
                "AND name NOT LIKE 'sqlite_%' ORDER BY name"
            ).scalars().all()

            for idx, table_name in enumerate(tables, 1):
                escaped = table_name.replace('"', '""')
                columns = conn.exec_driver_sql(
                    f'PRAGMA table_info("{escaped}")'
                ).mappings().all()

                lines.append(f"{idx}. {table_name}")
                for col in columns:
                    col_type = col["type"] or "UNKNOWN"
                    pk_suffix = ", primary key" if col["pk"] else ""
                    lines.append(f"   - {col['name']} ({col_type}{pk_suffix})")
                lines.append("")

        return "\n".join(lines).rstrip()

    def query(self, sql: str) -> list[dict[str, Any]]:
        """Run a SELECT and return rows as dicts."""
        engine = self._get_engine()
        with engine.connect() as conn:
            result = conn.exec_driver_sql(sql)
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings().all()]

    def close(self) -> None:
        """Dispose of the engine. Safe to call more than once."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> SQLiteDataset:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
