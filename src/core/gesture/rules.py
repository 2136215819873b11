"""
The rule catalog for gesture practice, and the advice attached to it.

Rules are keyed by sport and, for sports where technique differs by
event, by category. Only athletics splits by category today.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

MAX_IMPROVEMENT_AREAS = 3
GENERIC_SUGGESTION = "Continue practicing proper form and technique."


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class GestureRule:
    name: str
    description: str


@dataclass(frozen=True)
class ImprovementArea:
    area: str
    priority: Priority
    suggestion: str


_CatalogEntry = Union[list[GestureRule], dict[str, list[GestureRule]]]

RULE_CATALOG: dict[str, _CatalogEntry] = {
    "athletics": {
        "sprint": [
            GestureRule("proper_stance", "Maintain proper sprint stance with slight forward lean"),
            GestureRule("arm_swing", "Arms should swing naturally, not crossing body centerline"),
            GestureRule("knee_lift", "Adequate knee lift for efficient stride"),
        ],
        "long_jump": [
            GestureRule("approach_angle", "Maintain consistent approach angle"),
            GestureRule("takeoff_position", "Proper takeoff foot placement and body position"),
        ],
    },
    "football": [
        GestureRule("ball_control", "Maintain close ball control while dribbling"),
        GestureRule("body_position", "Keep balanced body position during movements"),
    ],
    "basketball": [
        GestureRule("shooting_form", "Proper shooting form with consistent release"),
        GestureRule("dribbling_posture", "Maintain low center of gravity while dribbling"),
    ],
}

SUGGESTIONS = {
    "proper_stance": (
        "Focus on maintaining a slight forward lean with your torso. "
        "Practice wall drills to feel the correct body angle."
    ),
    "arm_swing": (
        "Keep your arms relaxed and swing them naturally. "
        "Avoid crossing your arms over your body centerline."
    ),
    "knee_lift": "Work on high knee drills to improve your knee lift height and stride efficiency.",
    "ball_control": "Practice close ball control drills. Keep the ball within one step of your feet.",
    "body_position": "Focus on maintaining balance and a low center of gravity during movements.",
    "shooting_form": "Practice your shooting form with consistent hand placement and follow-through.",
    "dribbling_posture": "Keep your knees bent and maintain a low center of gravity while dribbling.",
}


def rules_for(sport: str, category: str) -> list[GestureRule]:
    """Category rules if defined, else the sport's own list, else none."""
    entry = RULE_CATALOG.get(sport)
    if entry is None:
        return []
    if isinstance(entry, dict):
        return list(entry.get(category, []))
    return list(entry)


def rule_description(rule_name: str) -> str:
    for entry in RULE_CATALOG.values():
        groups = entry.values() if isinstance(entry, dict) else [entry]
        for rules in groups:
            for rule in rules:
                if rule.name == rule_name:
                    return rule.description
    return rule_name.replace("_", " ")


def suggestion_for(rule_name: str) -> str:
    return SUGGESTIONS.get(rule_name, GENERIC_SUGGESTION)


def _priority(count: int) -> Priority:
    if count >= 3:
        return Priority.HIGH
    if count >= 2:
        return Priority.MEDIUM
    return Priority.LOW


def improvement_suggestions(rule_names: Iterable[str]) -> list[ImprovementArea]:
    """The most frequently broken rules, worst first, with advice."""
    counts = Counter(rule_names)
    return [
        ImprovementArea(
            area=name.replace("_", " ", 1),
            priority=_priority(count),
            suggestion=suggestion_for(name),
        )
        for name, count in counts.most_common(MAX_IMPROVEMENT_AREAS)
    ]
