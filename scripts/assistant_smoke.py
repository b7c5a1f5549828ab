"""Assistant smoke run: sends sample messages through a locally wired agent.

Uses an in-memory history store, so no database is needed. The LLM is used
only when OPENAI_API_KEY is set (read from .env); otherwise the heuristic
paths and static help answer.

Usage:
    python scripts/assistant_smoke.py
    python scripts/assistant_smoke.py --project demo --session s1 "Create task \"Write docs\""
    python scripts/assistant_smoke.py --no-llm --console-logs
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.agent.assistant import build_project_assistant  # noqa: E402
from src.agent.context import TenantRef  # noqa: E402
from src.agent.model_client import OpenAICompatModelClient  # noqa: E402
from src.config.settings import get_settings  # noqa: E402
from src.infra.logging import setup_logging  # noqa: E402
from src.session.history import InMemoryHistoryStore  # noqa: E402

DEFAULT_MESSAGES = [
    "Hello",
    "What is this project about?",
    "Show me the current tasks",
    "What's the project status?",
]


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Assistant smoke run")
    parser.add_argument("messages", nargs="*", help="Messages to send (default: built-in samples)")
    parser.add_argument("--project", default="smoke-project", help="Tenant/project id")
    parser.add_argument("--session", default=None, help="Session id (default: tenant-wide)")
    parser.add_argument("--no-llm", action="store_true", help="Ignore OPENAI_API_KEY")
    parser.add_argument(
        "--console-logs", action="store_true", help="Print structured logs to the console"
    )
    return parser.parse_args()


async def main() -> int:
    args = _parse_args()
    settings = get_settings()
    setup_logging(
        json_output=False,
        log_level="DEBUG" if args.console_logs else "ERROR",
    )

    model_client = None
    if settings.openai.enabled and not args.no_llm:
        model_client = OpenAICompatModelClient(
            api_key=settings.openai.api_key,
            base_url=settings.openai.base_url,
            max_retries=settings.openai.max_retries,
            timeout=settings.openai.timeout_seconds,
        )

    agent = build_project_assistant(
        settings,
        model_client=model_client,
        history_store=InMemoryHistoryStore(settings.assistant.history_load_limit),
    )
    tenant = TenantRef(id=args.project, name=args.project)

    print("Assistant smoke run")
    print(f"  project: {tenant.id}")
    print(f"  session: {args.session or '(tenant-wide)'}")
    print(f"  llm:     {'on' if model_client else 'off'}")
    print(f"  tools:   {', '.join(agent.kernel.tool_names())}")
    print()

    failures = 0
    for message in args.messages or DEFAULT_MESSAGES:
        start = time.monotonic()
        result = await agent.handle(tenant, message, args.session)
        elapsed_ms = (time.monotonic() - start) * 1000
        print(f"> {message}  ({elapsed_ms:.0f}ms)")
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        print()
        if result.is_error:
            failures += 1

    print(f"Results: {failures} error result(s)")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
