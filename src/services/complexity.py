"""Complexity heuristic gating the ai-assistant escalation tool.

The keyword groups and thresholds are configuration data, not a
classifier: a message is "complex" if any rule matches.
"""

from __future__ import annotations

from dataclasses import dataclass

ANALYSIS_KEYWORDS: tuple[str, ...] = (
    "analyze", "analysis", "insights", "patterns", "trends",
    "recommend", "suggestion", "advice", "strategy", "approach",
    "explain why", "how should", "what if", "compare", "evaluate",
)

PLANNING_KEYWORDS: tuple[str, ...] = (
    "plan for", "roadmap", "timeline", "milestone", "priority",
    "optimize", "improve", "better way", "best practice",
    "risk", "challenge", "bottleneck", "blocker",
)

CREATIVE_KEYWORDS: tuple[str, ...] = (
    "brainstorm", "idea", "creative", "innovative", "solution",
    "alternative", "different approach", "think outside",
    "what would happen if", "scenario",
)

PROJECT_KEYWORDS: tuple[str, ...] = (
    "overall project", "project health", "team performance",
    "project status", "progress overview", "next steps",
    "bigger picture", "high level", "summary",
)

COMPLEX_INTENT_KINDS: frozenset[str] = frozenset(
    {"analysis", "planning", "strategy", "evaluation"}
)


@dataclass(frozen=True)
class ComplexityHeuristic:
    keywords: tuple[str, ...] = (
        *ANALYSIS_KEYWORDS,
        *PLANNING_KEYWORDS,
        *CREATIVE_KEYWORDS,
        *PROJECT_KEYWORDS,
    )
    complex_intent_kinds: frozenset[str] = COMPLEX_INTENT_KINDS
    long_message_chars: int = 100
    long_message_words: int = 15

    def is_complex(self, message: str, intent_kind: str | None = None) -> bool:
        text = message.strip().lower()

        if any(keyword in text for keyword in self.keywords):
            return True

        if intent_kind in self.complex_intent_kinds:
            return True

        # Long messages usually carry several requirements at once
        if len(text) > self.long_message_chars and len(text.split()) > self.long_message_words:
            return True

        # Multi-clause questions
        question_marks = text.count("?")
        return question_marks > 1 or (question_marks == 1 and " and " in text)
