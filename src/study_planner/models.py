"""Data classes for the study planner domain model."""
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

# Empirical minutes needed per previous-year question.
PYQ_MINUTES_PER_QUESTION = 2.76923076923

# Synthetic module/item id used for the PYQ block of a subject.
PYQ_ID = "pyq"


class ContentType(str, Enum):
    """Kind of study unit."""

    LECTURE = "lecture"
    QUIZ = "quiz"
    HOMEWORK = "homework"
    PYQ = "pyq"
    TEST = "test"


class PlanTier(str, Enum):
    """Named daily target intensity."""

    MINIMUM = "minimum"
    MODERATE = "moderate"
    MAXIMUM = "maximum"
    CUSTOM = "custom"


class Timeframe(str, Enum):
    """Leaderboard aggregation window."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    OVERALL = "overall"


def pyq_estimated_duration(count: int) -> int:
    return math.ceil(count * PYQ_MINUTES_PER_QUESTION) if count > 0 else 0


@dataclass
class ContentItem:
    id: str
    type: ContentType
    name: str
    duration_minutes: int


@dataclass
class Module:
    id: str
    name: str
    content: list[ContentItem] = field(default_factory=list)


@dataclass
class PyqBlock:
    count: int = 0
    estimated_duration: int = 0


@dataclass
class Subject:
    id: str
    name: str
    modules: list[Module] = field(default_factory=list)
    pyqs: PyqBlock = field(default_factory=PyqBlock)

    @property
    def total_duration(self) -> int:
        total = sum(item.duration_minutes for module in self.modules for item in module.content)
        if self.pyqs.count > 0:
            total += self.pyqs.estimated_duration
        return total


@dataclass
class DailyTarget:
    minimum: int = 0
    moderate: int = 0
    maximum: int = 0
    custom: int = 0

    def for_plan(self, plan: str) -> int:
        try:
            return getattr(self, PlanTier(plan).value)
        except ValueError:
            return 0

    def as_dict(self) -> dict:
        return {
            "minimum": self.minimum,
            "moderate": self.moderate,
            "maximum": self.maximum,
            "custom": self.custom,
        }


@dataclass
class CompletionRecord:
    subject_id: str
    module_id: str
    item_id: str
    type: ContentType
    completed: bool = True
    completed_date: Optional[datetime] = None
    time_spent: int = 0
    notes: str = ""

    @property
    def key(self) -> str:
        return f"{self.module_id}-{self.item_id}-{self.type.value}"


@dataclass
class StudySessionRecord:
    subject_id: str
    module_id: str
    item_id: str
    type: ContentType
    start_time: datetime
    end_time: datetime
    duration: int
    notes: str = ""


@dataclass
class ScheduleEntry:
    date: date
    subject_id: str
    module_id: str
    item_id: str
    type: ContentType
    name: str
    duration: int
    module_name: str = ""
    subject_name: str = ""
    completed: bool = False
    completed_date: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.item_id, self.type.value, self.date.isoformat())


@dataclass
class User:
    id: str
    name: str
    deadline: Optional[date] = None
    daily_target: DailyTarget = field(default_factory=DailyTarget)
    selected_plan: str = PlanTier.MODERATE.value
    selected_subjects: list[str] = field(default_factory=list)
    subject_priorities: dict[str, int] = field(default_factory=dict)
    streak: int = 0
    last_streak_date: Optional[date] = None
    total_study_time: int = 0
    content_progress: list[CompletionRecord] = field(default_factory=list)
    study_sessions: list[StudySessionRecord] = field(default_factory=list)
    schedule: list[ScheduleEntry] = field(default_factory=list)


@dataclass
class StudyItem:
    """One unscheduled unit of content awaiting placement into a day."""

    subject_id: str
    subject_name: str
    module_id: str
    module_name: str
    item_id: str
    item_name: str
    type: ContentType
    duration: int
    priority: int
    order: int


@dataclass
class StudyPlan:
    days_remaining: int
    total_remaining_minutes: int
    daily_targets: DailyTarget
    selected_plan: str


@dataclass
class DaySchedule:
    date: date
    planned_sessions: list[ScheduleEntry] = field(default_factory=list)
    total_planned_duration: int = 0
    total_completed_duration: int = 0

    def add(self, entry: ScheduleEntry) -> None:
        self.planned_sessions.append(entry)
        self.total_planned_duration += entry.duration
        if entry.completed:
            self.total_completed_duration += entry.duration


@dataclass
class StreakUpdate:
    streak: int
    maintained: bool
    percentage: float
    message: str


@dataclass
class LeaderboardEntry:
    rank: int
    name: str
    streak: int
    total_study_time: int

    @property
    def total_study_hours(self) -> int:
        return self.total_study_time // 60
