# =============================================================================
# Agents Package — One Module per Workflow Pattern
# =============================================================================
#   - chaining.py: draft → gate check → translate (LangGraph, conditional exit)
#   - routing.py: classify → dispatch to a specialised handler (LangGraph)
#   - parallelization.py: sectioned review + voting (asyncio fan-out)
#   - reflection.py: generate → critique → revise loop (LangGraph)
#   - tool_use.py: model-driven tool calls (calculator, clock, units)
#   - planning.py: planner with a SQL data tool → dashboard HTML generator
#   - rag.py: semantic index → parallel relevance filter → grounded answer
#
# Every module exposes an async `main()` used by the CLI.
# =============================================================================
