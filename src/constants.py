"""Project-wide constants shared by settings, models and migrations."""

from __future__ import annotations

DB_SCHEMA = "taskpilot"
