"""Record types and their spreadsheet column layouts.

Each record kind owns one sheet. The column tuple of a kind is the only
contract between a record and its row: position is meaning, and the
header row is written from the same tuple.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .enums import (
    GoalStatus,
    Impact,
    Likelihood,
    ObstacleCategory,
    PlanType,
    Priority,
    TaskStatus,
)

DEFAULT_FILENAME = "project_data.xlsx"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordKind(Enum):
    TASK = "task"
    GOAL = "goal"
    PLAN = "plan"
    OBSTACLE = "obstacle"


# ── Column descriptions ──

ID = "id"
TEXT = "text"
DATE = "date"  # YYYY-MM-DD kept as text
ENUM = "enum"
TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class Column:
    header: str
    attr: str
    kind: str = TEXT
    required: bool = False
    enum: Optional[type[Enum]] = None
    option: Optional[str] = None
    short: Optional[str] = None
    help: str = ""


ID_COLUMN = Column("ID", "id", kind=ID, required=True)
CREATED_AT_COLUMN = Column("CreatedAt", "created_at", kind=TIMESTAMP)
UPDATED_AT_COLUMN = Column("UpdatedAt", "updated_at", kind=TIMESTAMP)


# ── Records ──

@dataclass
class Task:
    task_title: str
    priority: Priority
    description: Optional[str] = None
    estimated_effort: Optional[str] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[str] = None
    tags_categories: Optional[str] = None
    dependencies: Optional[str] = None
    reasoning: Optional[str] = None
    resolution: Optional[str] = None
    id: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Goal:
    goal_title: str
    target_completion_date: str
    priority: Priority
    kpis: Optional[str] = None
    resources_required: Optional[str] = None
    current_status: Optional[GoalStatus] = None
    motivation: Optional[str] = None
    first_step: Optional[str] = None
    potential_challenges: Optional[str] = None
    support_contacts: Optional[str] = None
    id: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Plan:
    plan_title: str
    plan_type: PlanType
    status: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    dependencies: Optional[str] = None
    progress: Optional[str] = None
    related_goal: Optional[str] = None
    key_milestones: Optional[str] = None
    allocated_resources: Optional[str] = None
    id: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Obstacle:
    obstacle_title: str
    likelihood: Optional[Likelihood] = None
    impact: Optional[Impact] = None
    mitigation_strategies: Optional[str] = None
    contingency_plans: Optional[str] = None
    category: Optional[ObstacleCategory] = None
    status: Optional[str] = None
    related_item: Optional[str] = None
    assigned_to: Optional[str] = None
    date_identified: Optional[str] = None
    id: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


# ── Layouts ──

TASK_COLUMNS: tuple[Column, ...] = (
    ID_COLUMN,
    Column("Task Title", "task_title", required=True, option="title", short="t",
           help="What is the task?"),
    Column("Description", "description", option="description", short="d",
           help="A detailed description of the task."),
    Column("Priority", "priority", kind=ENUM, required=True, enum=Priority,
           option="priority", short="p", help="How important is this task?"),
    Column("Estimated Effort", "estimated_effort", option="effort", short="e",
           help="Best estimate of the effort needed (e.g. hours, days)."),
    Column("Status", "status", kind=ENUM, enum=TaskStatus, option="status", short="s",
           help="Current status of the task."),
    Column("Due Date", "due_date", kind=DATE, option="due-date",
           help="Date the task should be done by."),
    Column("Tags/Categories", "tags_categories", option="tags",
           help="Tags or categories (e.g. UI, Bug, Feature)."),
    Column("Dependencies", "dependencies", option="depends-on",
           help="Tasks this one depends on (comma-separated titles)."),
    Column("Reasoning", "reasoning", option="reason",
           help="Goal or plan behind this task (title)."),
    Column("Resolution", "resolution", option="resolution",
           help="Resolution notes for completed or blocked tasks."),
    CREATED_AT_COLUMN,
    UPDATED_AT_COLUMN,
)

GOAL_COLUMNS: tuple[Column, ...] = (
    ID_COLUMN,
    Column("Goal Title", "goal_title", required=True, option="title", short="t",
           help="What is your goal?"),
    Column("Target Completion Date", "target_completion_date", kind=DATE, required=True,
           option="target-date", help="By when do you aim to complete it?"),
    Column("Priority", "priority", kind=ENUM, required=True, enum=Priority,
           option="priority", short="p", help="How important is this goal?"),
    Column("KPIs", "kpis", option="kpis",
           help="Metrics that will indicate success."),
    Column("Resources Required", "resources_required", option="resources",
           help="Resources you anticipate needing."),
    Column("Current Status", "current_status", kind=ENUM, enum=GoalStatus,
           option="status", short="s", help="Current status of the goal."),
    Column("Motivation", "motivation", option="motivation",
           help="Why is this goal important to you?"),
    Column("First Step", "first_step", option="first-step",
           help="First step to take (related task title)."),
    Column("Potential Challenges", "potential_challenges", option="challenges",
           help="Obstacles you foresee (comma-separated titles)."),
    Column("Support Contacts", "support_contacts", option="support",
           help="Who can support you in achieving this goal?"),
    CREATED_AT_COLUMN,
    UPDATED_AT_COLUMN,
)

PLAN_COLUMNS: tuple[Column, ...] = (
    ID_COLUMN,
    Column("Plan Title", "plan_title", required=True, option="title", short="t",
           help="What is the plan item?"),
    Column("Type of Plan", "plan_type", kind=ENUM, required=True, enum=PlanType,
           option="type", help="What type of plan is this?"),
    Column("Start Date", "start_date", kind=DATE, option="start-date",
           help="When should this plan item ideally start?"),
    Column("End Date", "end_date", kind=DATE, option="end-date",
           help="Expected completion date."),
    Column("Dependencies", "dependencies", option="depends-on",
           help="Plan items this one depends on (comma-separated titles)."),
    Column("Progress", "progress", option="progress",
           help="Current progress (e.g. 0%, 50%, notes)."),
    Column("Status", "status", required=True, option="status", short="s",
           help="Current status or health (e.g. On Track, At Risk)."),
    Column("Related Goal", "related_goal", option="goal",
           help="Goal this contributes to (title)."),
    Column("Key Milestones", "key_milestones", option="milestones",
           help="Key milestones (related task titles)."),
    Column("Allocated Resources", "allocated_resources", option="resources",
           help="Resources allocated to this plan item."),
    CREATED_AT_COLUMN,
    UPDATED_AT_COLUMN,
)

OBSTACLE_COLUMNS: tuple[Column, ...] = (
    ID_COLUMN,
    Column("Obstacle Title", "obstacle_title", required=True, option="title", short="t",
           help="What is the obstacle?"),
    Column("Likelihood", "likelihood", kind=ENUM, enum=Likelihood,
           option="likelihood", short="l", help="How likely is it to occur?"),
    Column("Impact", "impact", kind=ENUM, enum=Impact, option="impact",
           help="How severe would the impact be?"),
    Column("Mitigation Strategies", "mitigation_strategies", option="mitigation",
           help="Steps to prevent or reduce this obstacle."),
    Column("Contingency Plans", "contingency_plans", option="contingency",
           help="What will you do if this obstacle occurs?"),
    Column("Category", "category", kind=ENUM, enum=ObstacleCategory,
           option="category", short="c", help="What kind of obstacle is this?"),
    Column("Status", "status", option="status", short="s",
           help="Current status (e.g. Open, Resolved)."),
    Column("Related Item", "related_item", option="related-to",
           help="Goal, task or plan this relates to (title)."),
    Column("Assigned To", "assigned_to", option="assigned-to",
           help="Who is monitoring or addressing this?"),
    Column("Date Identified", "date_identified", kind=DATE, option="date-identified",
           help="When was this obstacle identified?"),
    CREATED_AT_COLUMN,
    UPDATED_AT_COLUMN,
)


@dataclass(frozen=True)
class Layout:
    sheet_name: str
    record_type: type
    columns: tuple[Column, ...]
    label: str
    plural: str

    @property
    def headers(self) -> list[str]:
        return [c.header for c in self.columns]


LAYOUTS: dict[RecordKind, Layout] = {
    RecordKind.TASK: Layout("BacklogTasks", Task, TASK_COLUMNS, "Backlog task", "tasks"),
    RecordKind.GOAL: Layout("FutureGoals", Goal, GOAL_COLUMNS, "Goal", "goals"),
    RecordKind.PLAN: Layout("PlanningItems", Plan, PLAN_COLUMNS, "Plan item", "plans"),
    RecordKind.OBSTACLE: Layout("Obstacles", Obstacle, OBSTACLE_COLUMNS, "Obstacle", "obstacles"),
}

_KIND_BY_TYPE: dict[type, RecordKind] = {
    layout.record_type: kind for kind, layout in LAYOUTS.items()
}


def kind_of(record) -> RecordKind:
    """Return the RecordKind of a record instance."""
    try:
        return _KIND_BY_TYPE[type(record)]
    except KeyError:
        raise TypeError(f"Unsupported record type: {type(record).__name__}") from None


def layout_for(kind: RecordKind) -> Layout:
    return LAYOUTS[kind]


def title_of(record) -> str:
    """Return the mandatory title text of any record."""
    return getattr(record, LAYOUTS[kind_of(record)].columns[1].attr)
