from __future__ import annotations

from src.agent.context import TenantRef

STATUS_LABELS: dict[str, str] = {
    "todo": "To Do",
    "inprogress": "In Progress",
    "review": "Review",
    "done": "Done",
}


class StaticHelpProvider:
    """Static usage text shown when no other tool could answer."""

    def __init__(self, labels: dict[str, str] | None = None) -> None:
        self._labels = {**STATUS_LABELS, **(labels or {})}

    def provide_help(self, tenant: TenantRef) -> str:
        done = self._labels["done"]
        lines = [
            "🤖 **Project Assistant Help**",
            "",
            "**📋 Task Operations:**",
            '• Create task "Fix login bug"',
            "• Show task #42",
            f"• Move #42 to {done}",
            "• Assign #42 to Alex",
            "• Delete task #42",
            "• Find tasks assigned to Sarah",
            "",
            "**📊 Project Questions:**",
            f"• How many tasks are {done}?",
            "• Who is the project owner?",
            "• Show project overview",
            "• Tasks due this week",
            "• Who created task #42?",
            "",
            "**💡 Tips:**",
            "• Use # followed by task ID (e.g., #42)",
            "• Reference team members by name or email",
            '• Combine filters: "urgent tasks for Alice"',
        ]
        return "\n".join(lines)

    def suggestions(self) -> list[str]:
        labels = self._labels
        return [
            f"How many tasks are {labels['done']}?",
            "List overdue tasks",
            "Who is the project owner?",
            "What methodology are we using?",
            "Show tasks assigned to me",
            f"Move tasks in {labels['review']} to {labels['done']}",
            "Delete urgent tasks",
            "Assign unassigned tasks to team members",
            "Create task for code review",
            f"Set all {labels['inprogress']} tasks to {labels['review']}",
            "Show project timeline",
            "List high priority tasks",
            "Generate weekly progress report",
        ]
