"""Command planning: turns a command-like message into a previewable plan.

Plans are never executed here. The planner normalizes the classifier's
seed plan, falls back to rule-based parsing, and as a last resort asks the
LLM to synthesize one. Every plan is validated before it is offered; a
failed validation yields a PlanResult carrying only the reason.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from src.agent.context import HistoryTurn, PlanResult, TenantRef
from src.agent.model_client import ModelClient
from src.infra.errors import LLMError

logger = structlog.get_logger()

STATUSES: tuple[str, ...] = ("todo", "inprogress", "review", "done")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")

ALLOWED_TYPES: frozenset[str] = frozenset({
    "create_task",
    "task_update",
    "task_delete",
    "bulk_update",
    "bulk_assign",
    "bulk_delete",
    "bulk_delete_overdue",
    "bulk_delete_all",
})

_TYPE_ALIASES: dict[str, str] = {
    "createtask": "create_task", "newtask": "create_task",
    "updatetask": "task_update", "edittask": "task_update", "movetask": "task_update",
    "deletetask": "task_delete", "removetask": "task_delete", "delete": "task_delete",
    "bulkupdate": "bulk_update", "massupdate": "bulk_update",
    "bulkassign": "bulk_assign", "assignall": "bulk_assign",
    "bulkdelete": "bulk_delete", "deletefiltered": "bulk_delete",
    "deleteall": "bulk_delete_all", "bulkdeleteall": "bulk_delete_all",
    "bulkdeleteoverdue": "bulk_delete_overdue", "deleteoverdue": "bulk_delete_overdue",
}

_STATUS_ALIASES: dict[str, str] = {
    "to do": "todo", "to-do": "todo", "backlog": "todo", "open": "todo", "first": "todo",
    "in progress": "inprogress", "in-progress": "inprogress", "doing": "inprogress",
    "wip": "inprogress", "second": "inprogress",
    "in review": "review", "testing": "review", "qa": "review", "third": "review",
    "completed": "done", "complete": "done", "finished": "done", "closed": "done",
    "fourth": "done",
}

_PRIORITY_ALIASES: dict[str, str] = {
    "p3": "low", "p2": "medium", "p1": "high", "p0": "urgent",
    "critical": "urgent", "blocker": "urgent",
}

_STATUS_LABELS: dict[str, str] = {
    "todo": "To Do", "inprogress": "In Progress", "review": "Review", "done": "Done",
}

_CREATE_RE = re.compile(
    r"\b(?:create|add|new|make)\s+(?:a\s+)?(?:new\s+)?task\s+(?:called\s+|named\s+|titled\s+)?"
    r"[\"']?(.+?)[\"']?$",
    re.I,
)
_DELETE_RE = re.compile(r"\b(?:delete|remove|destroy|purge|drop)\b", re.I)
_TASK_ID_RE = re.compile(r"#(\d+)|\btask\s+#?(\d+)\b", re.I)
_PRIORITY_TOKEN_RE = re.compile(r"\b(low|medium|high|urgent|critical|blocker|p[0-3])\b", re.I)
_STATUS_TARGET_RE = re.compile(
    r"\b(?:move|set|mark|status)\b.*?\b(?:to|in|as|into)\s+([a-z\- ]+)", re.I
)
_ASSIGN_RE = re.compile(r"\bassign\b.*?\bto\s+([a-z0-9._@\-]+(?: [a-z0-9._@\-]+)?)", re.I)
_TITLE_RE = re.compile(r"\b(?:title|rename)\b.*?\"([^\"]+)\"", re.I)
_BULK_PRIORITY_RE = re.compile(
    r"\b(?:set|change|update)\s+(?:all\s+)?priority\s+(?:to|as)\s+(low|medium|high|urgent)\b", re.I
)
_FILTER_PRIORITY_RE = re.compile(r"\b(low|medium|high|urgent)\s+(?:priority|tasks?)\b", re.I)
_FILTER_STATUS_RE = re.compile(r"\b(todo|in\s?progress|review|done)\s+tasks?\b", re.I)
_FILTER_IN_STATUS_RE = re.compile(
    r"\btasks?\s+in\s+(to\s?do|todo|in\s?progress|review|done)\b", re.I
)
_FILTER_PERSON_RE = re.compile(
    r"\b([A-Z][a-z]+)'s\s+tasks\b|\btasks\s+(?:assigned\s+to|for)\s+([A-Z][a-z]+)\b"
)
_BULK_STATUS_RE = re.compile(r"\b(?:move|set|mark)\b.*?\b(?:to|as)\s+([a-z\- ]+)", re.I)

PLANNER_SYSTEM_PROMPT = """\
You are a strict command planner for a project management system.
Return ONLY a valid JSON object with this structure:
{"type": "create_task|task_update|task_delete|bulk_update|bulk_assign|bulk_delete",
 "selector": {"id": 123}, "payload": {"title": "..."},
 "changes": {"status": "done", "priority": "high", "title": "...", "assignee_hint": "user"},
 "filters": {"status": "todo"}, "updates": {"priority": "high"}, "assignee": "name"}
Normalize statuses to: todo, inprogress, review, done.
Normalize priorities to: low, medium, high, urgent.
Always extract task IDs from patterns like '#238' or 'task 238'.
For unclear input, return an empty object {}."""


def normalize_type(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    key = value.strip().lower().replace("-", "").replace("_", "")
    return _TYPE_ALIASES.get(key, value.strip().lower())


def resolve_status(token: Any) -> str | None:
    if not isinstance(token, str):
        return None
    text = " ".join(token.strip().lower().split())
    if text.replace(" ", "") in STATUSES:
        return text.replace(" ", "")
    return _STATUS_ALIASES.get(text)


def _leading_status(fragment: str) -> str | None:
    """Resolve a status from the first one or two words of a captured phrase."""
    words = fragment.split()
    for size in (2, 1):
        if len(words) >= size and (status := resolve_status(" ".join(words[:size]))):
            return status
    return None


def resolve_priority(token: Any) -> str | None:
    if not isinstance(token, str):
        return None
    text = token.strip().lower()
    if text in PRIORITIES:
        return text
    return _PRIORITY_ALIASES.get(text)


_SECTIONS = ("selector", "changes", "payload", "updates", "filters")


def _section(plan: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    block = plan.get(key)
    return block if isinstance(block, Mapping) else {}


def normalize_plan(plan: Mapping[str, Any]) -> dict[str, Any]:
    """Canonicalize type, status and priority tokens. Unknown tokens are dropped.

    Sections that are not mappings (a bare selector id, a title string) are
    dropped, so validation reports them as missing.
    """
    normalized: dict[str, Any] = {
        key: dict(value) if isinstance(value, Mapping) else value
        for key, value in plan.items()
    }
    for section in _SECTIONS:
        block = normalized.get(section)
        if block is None:
            continue
        if not isinstance(block, dict):
            normalized.pop(section)
            continue
        if "status" in block:
            status = resolve_status(block["status"])
            if status is None:
                block.pop("status")
            else:
                block["status"] = status
        if "priority" in block:
            priority = resolve_priority(block["priority"])
            if priority is None:
                block.pop("priority")
            else:
                block["priority"] = priority
    filters = normalized.get("filters")
    if isinstance(filters, dict) and filters.get("assigned_to_hint"):
        filters.pop("all", None)
    normalized["type"] = normalize_type(normalized.get("type"))
    return normalized


def validate_plan(plan: Mapping[str, Any]) -> str | None:
    """Return None for a valid plan, else a user-facing reason."""
    plan_type = plan.get("type")
    if not plan_type:
        return "I couldn't understand that command. Please be more specific."
    if plan_type not in ALLOWED_TYPES:
        return "Unsupported command type."

    if plan_type in ("task_update", "task_delete"):
        selector = _section(plan, "selector")
        try:
            task_id = int(selector.get("id", 0))
        except (TypeError, ValueError):
            task_id = 0
        if task_id <= 0:
            return "A specific task ID (e.g., #123) is required for this action."
        if plan_type == "task_update" and not _section(plan, "changes"):
            return 'Please specify what to change (e.g., "set priority to high").'

    if plan_type in ("bulk_update", "bulk_assign", "bulk_delete"):
        if not _section(plan, "filters"):
            return 'Please specify which tasks to affect (e.g., "all overdue tasks").'
        if plan_type == "bulk_update" and not _section(plan, "updates"):
            return 'Please specify what to update (e.g., "move to done").'
        if plan_type == "bulk_assign" and not plan.get("assignee"):
            return "Please specify who to assign the tasks to."

    if plan_type == "create_task":
        title = _section(plan, "payload").get("title", "")
        if not isinstance(title, str) or not title.strip():
            return "A title is required to create a task."

    return None


def _updates_human(updates: Mapping[str, Any]) -> str:
    pieces = []
    if "status" in updates:
        pieces.append(f'set status to "{_STATUS_LABELS.get(updates["status"], updates["status"])}"')
    if "priority" in updates:
        pieces.append(f"set priority to {updates['priority']}")
    if "assignee_hint" in updates:
        pieces.append(f'assign to "{updates["assignee_hint"]}"')
    if "title" in updates:
        pieces.append(f'rename to "{updates["title"]}"')
    if "description" in updates:
        pieces.append("update the description")
    return ", ".join(pieces) if pieces else "make changes"


def _filters_human(filters: Mapping[str, Any]) -> str:
    if filters.get("all"):
        return "on ALL tasks"
    parts = []
    if filters.get("status"):
        parts.append(f'in "{_STATUS_LABELS.get(filters["status"], filters["status"])}"')
    if filters.get("priority"):
        parts.append(f"with {filters['priority']} priority")
    if filters.get("overdue"):
        parts.append("that are overdue")
    if filters.get("unassigned"):
        parts.append("that are unassigned")
    if filters.get("assigned_to_hint"):
        parts.append(f'assigned to "{filters["assigned_to_hint"]}"')
    return f"({' and '.join(parts)})" if parts else ""


def render_preview(plan: Mapping[str, Any]) -> str:
    plan_type = plan.get("type")
    selector = _section(plan, "selector")
    filters = _section(plan, "filters")
    match plan_type:
        case "create_task":
            title = _section(plan, "payload").get("title", "Untitled")
            return f'✅ Create a new task "{title}" in "{_STATUS_LABELS["todo"]}".'
        case "task_delete":
            return f"🗑️ Permanently delete task #{selector.get('id', 'unknown')}."
        case "task_update":
            what = _updates_human(_section(plan, "changes"))
            return f"✏️ On task #{selector.get('id', 'unknown')}, {what}."
        case "bulk_update":
            what = _updates_human(_section(plan, "updates"))
            return f"⚡ This will update tasks {_filters_human(filters)}: {what}."
        case "bulk_assign":
            assignee = plan.get("assignee", "")
            return f'⚡ This will assign tasks {_filters_human(filters)} to "{assignee}".'
        case "bulk_delete":
            return f"⚡ This will permanently delete tasks {_filters_human(filters)}."
        case "bulk_delete_overdue":
            return "🗑️ This will permanently delete all overdue tasks."
        case "bulk_delete_all":
            return "⚠️ This will permanently delete ALL tasks in this project."
        case _:
            logger.warning("plan_preview_unknown_type", plan_type=plan_type)
            return "An unknown action is planned."


def _task_id(text: str) -> int | None:
    match = _TASK_ID_RE.search(text)
    if match is None:
        return None
    return int(match.group(1) or match.group(2))


def _parse_filters(text: str) -> dict[str, Any]:
    filters: dict[str, Any] = {}
    lowered = text.lower()
    ids = [int(m) for m in re.findall(r"#(\d+)", text)]
    if ids:
        filters["ids"] = ids
    if match := _FILTER_PRIORITY_RE.search(text):
        filters["priority"] = resolve_priority(match.group(1))
    if match := _FILTER_STATUS_RE.search(text) or _FILTER_IN_STATUS_RE.search(text):
        filters["status"] = resolve_status(match.group(1))
    if "overdue" in lowered:
        filters["overdue"] = True
    if "unassigned" in lowered:
        filters["unassigned"] = True
    if match := _FILTER_PERSON_RE.search(text):
        filters["assigned_to_hint"] = match.group(1) or match.group(2)
    return {key: value for key, value in filters.items() if value is not None}


def _parse_task_changes(text: str) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    if "priority" in text.lower() and (match := _PRIORITY_TOKEN_RE.search(text)):
        if priority := resolve_priority(match.group(1)):
            changes["priority"] = priority
    if match := _STATUS_TARGET_RE.search(text):
        if status := _leading_status(match.group(1)):
            changes["status"] = status
    if match := _ASSIGN_RE.search(text):
        changes["assignee_hint"] = match.group(1).strip()
    if match := _TITLE_RE.search(text):
        changes["title"] = match.group(1).strip()
    return changes


def compile_rule_plan(message: str) -> dict[str, Any]:
    """Best-effort rule-based plan. Returns {} when nothing matches."""
    text = message.strip()
    lowered = text.lower()

    if match := _CREATE_RE.search(text):
        title = match.group(1).strip()
        if title:
            return {"type": "create_task", "payload": {"title": title}}

    task_id = _task_id(text)

    if _DELETE_RE.search(text):
        if task_id is not None:
            return {"type": "task_delete", "selector": {"id": task_id}}
        filters = _parse_filters(text)
        if filters.keys() == {"overdue"}:
            return {"type": "bulk_delete_overdue"}
        if not filters and re.search(r"\ball\s+(?:the\s+)?tasks\b", lowered):
            return {"type": "bulk_delete_all"}
        return {"type": "bulk_delete", "filters": filters}

    if task_id is not None:
        changes = _parse_task_changes(text)
        if changes:
            return {"type": "task_update", "selector": {"id": task_id}, "changes": changes}

    updates: dict[str, Any] = {}
    if match := _BULK_STATUS_RE.search(text):
        if status := _leading_status(match.group(1)):
            updates["status"] = status
    if match := _BULK_PRIORITY_RE.search(text):
        updates["priority"] = resolve_priority(match.group(1))
    if updates:
        return {
            "type": "bulk_update",
            "filters": _parse_filters(text) or {"all": True},
            "updates": updates,
        }

    if match := _ASSIGN_RE.search(text):
        return {
            "type": "bulk_assign",
            "filters": _parse_filters(text) or {"all": True},
            "assignee": match.group(1).strip(),
        }

    return {}


class CommandPlanningService:
    def __init__(
        self,
        model_client: ModelClient | None = None,
        *,
        model: str = "gpt-4o-mini",
        history_tail: int = 15,
        temperature: float = 0.0,
    ) -> None:
        self._model_client = model_client
        self._model = model
        self._history_tail = history_tail
        self._temperature = temperature

    async def generate_plan(
        self,
        tenant: TenantRef,
        message: str,
        history: Sequence[HistoryTurn],
        seed: Mapping[str, Any],
    ) -> PlanResult:
        plan: dict[str, Any] = {}
        source = "none"

        if seed and seed.get("type"):
            candidate = normalize_plan(seed)
            if validate_plan(candidate) is None:
                plan, source = candidate, "seed"

        rule_plan: dict[str, Any] = {}
        if not plan:
            candidate = compile_rule_plan(message)
            if candidate:
                rule_plan = normalize_plan(candidate)
                if validate_plan(rule_plan) is None:
                    plan, source = rule_plan, "rules"

        if not plan and self._model_client is not None:
            try:
                candidate = await self._synthesize(self._model_client, message, history)
            except LLMError:
                logger.exception("plan_llm_synthesis_failed", tenant_id=tenant.id)
            else:
                if candidate:
                    plan, source = normalize_plan(candidate), "llm"

        # an incomplete rule plan still explains what is missing
        if not plan and rule_plan:
            plan, source = rule_plan, "rules"

        reason = validate_plan(plan)
        if reason is not None:
            logger.info("plan_rejected", tenant_id=tenant.id, source=source, reason=reason)
            return PlanResult(preview_message=reason, command_data=None)

        logger.info("plan_generated", tenant_id=tenant.id, source=source, plan_type=plan["type"])
        return PlanResult(preview_message=render_preview(plan), command_data=plan)

    async def _synthesize(
        self, client: ModelClient, message: str, history: Sequence[HistoryTurn]
    ) -> dict[str, Any]:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
            *(
                turn.to_dict()
                for turn in history[-self._history_tail:]
                if turn.role in ("user", "assistant")
            ),
            {"role": "user", "content": message},
        ]
        return await client.chat_json(messages, self._model, temperature=self._temperature)
