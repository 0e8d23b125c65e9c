"""Core (UI-agnostic) dashboard logic.

This package contains:
- settings (environment / .env)
- the upstream listings proxy (requests)
- the listings pipeline: flatten, filter, group, average, sort
- table view state and the refresh cooldown
- the group table payload builder and chart helpers (Altair -> Vega-Lite spec dict)
"""
