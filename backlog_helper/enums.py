"""Closed value sets used by backlog records.

Member values are the canonical names written to the spreadsheet.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, TypeVar

E = TypeVar("E", bound=Enum)


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(Enum):
    TO_DO = "toDo"
    IN_PROGRESS = "inProgress"
    BLOCKED = "blocked"
    DONE = "done"


class GoalStatus(Enum):
    NOT_STARTED = "notStarted"
    PLANNING = "planning"
    IN_PROGRESS = "inProgress"
    ACHIEVED = "achieved"


class PlanType(Enum):
    STRATEGIC = "strategic"
    TACTICAL = "tactical"
    OPERATIONAL = "operational"


class Likelihood(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Impact(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ObstacleCategory(Enum):
    TECHNICAL = "technical"
    RESOURCE = "resource"
    MARKET = "market"
    BEHAVIORAL = "behavioral"
    COMMUNICATION = "communication"
    FINANCIAL = "financial"


# ── Descriptions ──
# Shown next to each allowed value in CLI help.

DESCRIPTIONS: dict[Enum, str] = {
    Priority.HIGH: "Critical tasks needing immediate attention",
    Priority.MEDIUM: "Important tasks to be addressed soon",
    Priority.LOW: "Less critical tasks for later",
    TaskStatus.TO_DO: "Task not yet started",
    TaskStatus.IN_PROGRESS: "Task currently being worked on",
    TaskStatus.BLOCKED: "Task progress halted",
    TaskStatus.DONE: "Task completed",
    GoalStatus.NOT_STARTED: "Goal not yet initiated",
    GoalStatus.PLANNING: "Goal in the planning stage",
    GoalStatus.IN_PROGRESS: "Goal currently being worked on",
    GoalStatus.ACHIEVED: "Goal successfully completed",
    PlanType.STRATEGIC: "High-level, long-term plan",
    PlanType.TACTICAL: "Mid-level plan to achieve strategic goals",
    PlanType.OPERATIONAL: "Low-level, day-to-day action plan",
    Likelihood.HIGH: "Very likely to occur",
    Likelihood.MEDIUM: "Moderately likely to occur",
    Likelihood.LOW: "Not very likely to occur",
    Impact.HIGH: "Significant negative consequences",
    Impact.MEDIUM: "Moderate negative consequences",
    Impact.LOW: "Minor negative consequences",
    ObstacleCategory.TECHNICAL: "Issues related to technology",
    ObstacleCategory.RESOURCE: "Lack of necessary resources",
    ObstacleCategory.MARKET: "Challenges from the market",
    ObstacleCategory.BEHAVIORAL: "Issues related to team or individual behavior",
    ObstacleCategory.COMMUNICATION: "Issues related to information flow",
    ObstacleCategory.FINANCIAL: "Issues related to budget or funding",
}


def describe(member: Enum) -> str:
    return DESCRIPTIONS.get(member, "")


def try_parse(enum_cls: type[E], value: Optional[str]) -> Optional[E]:
    """Match *value* against the canonical names, ignoring case and padding.

    Returns None for None, blank or unknown input.
    """
    if value is None:
        return None
    wanted = str(value).strip().lower()
    if not wanted:
        return None
    for member in enum_cls:
        if member.value.lower() == wanted:
            return member
    return None


def names(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def allowed_values(enum_cls: type[Enum]) -> str:
    return ", ".join(names(enum_cls))
