# =============================================================================
# Planning — Dashboard Generator over a SQLite Dataset
# =============================================================================
#
# FLOW:
#   1. Load data/inputs/planning.json (dataset + user request)
#   2. Ensure the SQLite DB is downloaded to data/planning/database/<name>.db
#   3. Extract a concise schema summary
#   4. PLANNER (advanced model, tool loop):
#        sees dataset + schema + request, calls `dataTool` to fetch data,
#        returns a textual plan that starts with "DASHBOARD PLAN"
#   5. GENERATOR (basic model): turns the plan into a single <body> element
#      using Bootstrap 5 + Chart.js
#   6. Wrap the body in a fixed HTML page that embeds every dataset the
#      planner fetched as `window.dashboardData`, save dashboard.html
#
# dataTool:
#   natural-language request ──▶ SQL generator (advanced, temperature 0)
#   ──▶ read-only SELECT ──▶ rows stored under "<datasetName>_<n>"
#   ──▶ returns {dataFile, previewJson}; the full rows never pass through
#       the model, only the truncated preview does
#
# DESIGN DECISION: Collected data lives in a per-run DataCollector rather
# than module globals, so two runs never share keys or counters.
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from string import Template
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agentic_patterns.config import settings
from agentic_patterns.services.database import SQLiteDataset
from agentic_patterns.services.inputs import load_input, write_output
from agentic_patterns.services.llm import (
    LLMProvider,
    Tool,
    get_advanced_model,
    get_basic_model,
)
from agentic_patterns.services.preview import build_preview_json

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class PlanningInput(BaseModel):
    """data/inputs/planning.json (camelCase keys accepted)."""

    model_config = ConfigDict(populate_by_name=True)

    user_request: str = Field(alias="userRequest", min_length=1)
    # Used as a file name, so restricted to a safe character set
    dataset_name: str = Field(alias="datasetName", pattern=r"^[A-Za-z0-9_-]+$")
    dataset_description: str = Field(alias="datasetDescription", min_length=1)
    database_url: str = Field(alias="databaseUrl", min_length=1)
    port: int | None = None


class DataRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data_request: str = Field(
        alias="dataRequest",
        description=(
            "Natural-language description of the data needed. This tool will "
            "translate the request into a SQLite SELECT query internally."
        ),
    )


class DashboardResult(BaseModel):
    plan: str
    output_file: Path


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SQL_GENERATOR_PROMPT = """You translate data requests into SQLite queries.

DATASET DESCRIPTION:
{dataset_description}

SCHEMA:
{schema_summary}

DATA REQUEST:
{data_request}

Rules:
- Return exactly ONE SQLite SELECT statement and nothing else
- No markdown, no code fences, no comments, no trailing explanation
- Use only tables and columns that appear in the schema
- Give computed columns short snake_case aliases
- Aggregate in SQL where the request asks for totals, averages or counts
- Add ORDER BY for rankings and time series, and LIMIT 100 unless the \
request needs every row"""

PLANNER_PROMPT = """You are a data analyst planning an interactive dashboard.

DATASET: {dataset_name}
DESCRIPTION: {dataset_description}

SCHEMA:
{schema_summary}

USER REQUEST:
{user_request}

Use the dataTool to fetch every dataset the dashboard will display. Each \
call returns a `dataFile` key and a truncated preview of the rows; the full \
rows are embedded in the final page under that key. Fetch aggregated, \
chart-ready data rather than raw tables, and check each preview to confirm \
the columns are what you expect.

When you have all the data, reply with the plan in exactly this format:

DASHBOARD PLAN
Title: <dashboard title>
Summary: <one or two sentences on what the dashboard shows>

Components:
1. <component title>
   - Type: <kpi | bar | line | pie | doughnut | table>
   - Data: <dataFile key>
   - Fields: <columns used, e.g. x=month, y=total_sales>
   - Notes: <sorting, formatting, colours, insights to highlight>
2. ...

Layout: <how components are arranged in Bootstrap rows and columns>"""

GENERATOR_PROMPT = """Generate the HTML body of a dashboard from this plan.

DATASET: {dataset_name}
DESCRIPTION: {dataset_description}

SCHEMA:
{schema_summary}

USER REQUEST:
{user_request}

PLAN:
{plan}

Requirements:
- Output a single <body>...</body> element and NOTHING else (no <html>, no \
<head>, no markdown fences)
- Bootstrap 5 and Chart.js 4 are already loaded in the page head
- The data is available as `window.dashboardData`, an object keyed by the \
dataFile names in the plan; each value is an array of row objects
- Read every number from window.dashboardData; never hard-code data values
- Use Bootstrap cards and a responsive grid; give every chart a fixed-height \
container
- Put all JavaScript in one <script> tag at the end of the body, run it on \
DOMContentLoaded and guard against missing keys"""

HTML_WRAPPER = Template("""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>$title</title>
  <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/css/bootstrap.min.css">
  <script src="https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/js/bootstrap.bundle.min.js"></script>
  <script src="https://cdn.jsdelivr.net/npm/chart.js@4.4.1/dist/chart.umd.min.js"></script>
  $data_script
</head>
$body
</html>
""")

PLAN_PREFIX = "DASHBOARD PLAN"


# ---------------------------------------------------------------------------
# dataTool
# ---------------------------------------------------------------------------


class DataCollector:
    """Full query results fetched during one run, keyed by dataFile name."""

    def __init__(self, dataset_name: str) -> None:
        self._dataset_name = dataset_name
        self._counter = 0
        self.data: dict[str, Any] = {}

    def add(self, rows: Any) -> str:
        self._counter += 1
        key = f"{self._dataset_name}_{self._counter}"
        self.data[key] = rows
        return key


_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


async def generate_sql(
    llm: LLMProvider,
    dataset_description: str,
    schema_summary: str,
    data_request: str,
) -> str:
    """
    Translate a natural-language data request into one SQLite query.

    Raises:
        ValueError: If the generator returns an empty query.
    """
    response = await llm.complete(
        messages=[{
            "role": "user",
            "content": SQL_GENERATOR_PROMPT.format(
                dataset_description=dataset_description,
                schema_summary=schema_summary,
                data_request=data_request,
            ),
        }],
        temperature=0.0,
    )
    sql = _strip_fences(response.content)
    if not sql:
        raise ValueError("[dataTool] SQL generator returned an empty query.")
    return sql


def create_data_tool(
    dataset: SQLiteDataset,
    schema_summary: str,
    collector: DataCollector,
    sql_llm: LLMProvider,
) -> Tool:
    """Build a dataTool bound to one opened dataset."""

    async def execute(params: DataRequest) -> dict[str, str]:
        sql = await generate_sql(
            sql_llm,
            dataset.dataset_description,
            schema_summary,
            params.data_request,
        )
        logger.info(
            "[dataTool] Executing SQL generated from natural-language request:\n%s",
            sql,
        )

        rows = await asyncio.to_thread(dataset.query, sql)
        key = collector.add(rows)
        logger.info("[dataTool] Stored %d rows as '%s'", len(rows), key)

        return {"dataFile": key, "previewJson": build_preview_json(rows)}

    return Tool(
        name="dataTool",
        description=(
            "Queries the local SQLite dataset and returns a data file key plus "
            "a truncated preview JSON. Full data is kept for the dashboard, "
            "not passed through the model."
        ),
        input_model=DataRequest,
        execute=execute,
    )


# ---------------------------------------------------------------------------
# HTML Assembly
# ---------------------------------------------------------------------------


def extract_body(text: str) -> str:
    """Return the <body> element from generator output, wrapping bare HTML."""
    cleaned = _strip_fences(text)
    match = re.search(r"<body\b.*</body>", cleaned, re.IGNORECASE | re.DOTALL)
    if match:
        return match.group(0)
    logger.warning("Generator output has no <body> element; wrapping it")
    return f"<body>\n{cleaned}\n</body>"


def wrap_html(body: str, collected_data: dict[str, Any], title: str) -> str:
    """Embed the collected data and body into the fixed page wrapper."""
    # "</" inside JSON strings would close the script tag early
    data_json = json.dumps(collected_data, ensure_ascii=False, default=str)
    data_json = data_json.replace("</", "<\\/")
    data_script = f"<script>window.dashboardData = {data_json};</script>"
    return HTML_WRAPPER.substitute(
        title=title, data_script=data_script, body=extract_body(body),
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def run_dashboard(
    planning_input: PlanningInput,
    planner_llm: LLMProvider | None = None,
    generator_llm: LLMProvider | None = None,
    sql_llm: LLMProvider | None = None,
    database_dir: Path | None = None,
    output_path: Path | None = None,
) -> DashboardResult:
    """Plan and generate the dashboard; the dataset is always closed."""
    planner_llm = planner_llm or get_advanced_model()
    generator_llm = generator_llm or get_basic_model()
    sql_llm = sql_llm or get_advanced_model()
    output_path = output_path or settings.output_dir / "dashboard.html"

    dataset = SQLiteDataset(
        planning_input.dataset_name,
        planning_input.dataset_description,
        planning_input.database_url,
        database_dir or settings.database_dir,
    )
    await asyncio.to_thread(dataset.open)

    try:
        schema_summary = dataset.get_schema_summary()
        print("\n=== Schema Summary ===\n")
        print(schema_summary)

        collector = DataCollector(planning_input.dataset_name)
        data_tool = create_data_tool(dataset, schema_summary, collector, sql_llm)

        print("\nRunning planner LLM...\n")
        plan_result = await planner_llm.run_tools(
            messages=[{
                "role": "user",
                "content": PLANNER_PROMPT.format(
                    dataset_name=planning_input.dataset_name,
                    dataset_description=planning_input.dataset_description,
                    schema_summary=schema_summary,
                    user_request=planning_input.user_request,
                ),
            }],
            tools=[data_tool],
            temperature=0.2,
            max_steps=settings.planner_max_steps,
        )
        plan = plan_result.text

        if not plan.strip().startswith(PLAN_PREFIX):
            logger.warning(
                "Planner output does not start with '%s'. "
                "The generator will still attempt to use it.",
                PLAN_PREFIX,
            )

        print("\n=== DASHBOARD PLAN ===\n")
        print(plan)

        print("\nRunning generator LLM...\n")
        body_response = await generator_llm.complete(
            messages=[{
                "role": "user",
                "content": GENERATOR_PROMPT.format(
                    dataset_name=planning_input.dataset_name,
                    dataset_description=planning_input.dataset_description,
                    schema_summary=schema_summary,
                    user_request=planning_input.user_request,
                    plan=plan,
                ),
            }],
            temperature=0.4,
        )

        html = wrap_html(
            body_response.content,
            collector.data,
            title=f"{planning_input.dataset_name} dashboard",
        )
        write_output(output_path, html)
    finally:
        dataset.close()

    return DashboardResult(plan=plan, output_file=output_path)


async def main(input_path: Path | None = None) -> DashboardResult:
    """Entry point used by the CLI."""
    print("--- Dashboard Planning Example ---")
    planning_input = load_input(
        input_path or settings.inputs_dir / "planning.json", PlanningInput,
    )
    print(f"Loaded input for dataset: {planning_input.dataset_name}")
    print(f"User request: {planning_input.user_request}")

    result = await run_dashboard(planning_input)

    print("\n--- Execution Complete ---")
    print(f"Generated dashboard: {result.output_file}")
    print("Open this file in your browser to view the generated dashboard.")
    return result
