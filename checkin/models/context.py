"""
User context snapshot models.

The context source is a JavaScript-facing service, so the wire format uses
camelCase keys. Absent sections are meaningful: they mark a stage whose
prerequisite is not satisfied.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ContextModel(BaseModel):
    """Base for context models: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ActiveGoal(ContextModel):
    """The user's current goal."""

    title: str
    domain: str | None = None
    current_state: str | None = None
    desired_state: str | None = None
    started_at: datetime | None = None


class ChallengeSummary(ContextModel):
    """A daily challenge, today's or a recent one."""

    title: str
    status: str = "pending"


class HabitSummary(ContextModel):
    name: str


class HabitStats(ContextModel):
    """Habit tracking statistics for the past week."""

    total_habits: int = 0
    completed_today: int = 0
    weekly_completion_rate: float = 0.0
    habits: list[HabitSummary] = Field(default_factory=list)


class SurveySummary(ContextModel):
    """A recent daily mood survey (all levels 1-10)."""

    energy_level: int | None = None
    motivation_level: int | None = None
    overall_mood: int | None = None


class UserContext(ContextModel):
    """
    Read-only snapshot of the user's goal, challenge, habit and survey data.

    Fetched once per session. An empty instance is the degraded form used
    when the context source is unavailable.
    """

    model_config = ConfigDict(frozen=True)

    display_name: str | None = None

    # Goal
    active_goal: ActiveGoal | None = None
    day_in_journey: int = 0
    streak: int = 0
    avg_mood: float | None = None

    # Challenges
    today_challenge: ChallengeSummary | None = None
    recent_challenges: list[ChallengeSummary] = Field(default_factory=list)
    completed_challenges_count: int = 0
    total_challenges: int = 0

    # Habits
    habit_stats: HabitStats | None = None

    # Surveys
    recent_surveys: list[SurveySummary] = Field(default_factory=list)

    @property
    def has_active_goal(self) -> bool:
        return self.active_goal is not None

    @property
    def has_challenges(self) -> bool:
        return self.today_challenge is not None or bool(self.recent_challenges)

    @property
    def has_habits(self) -> bool:
        if self.habit_stats is None:
            return False
        return self.habit_stats.total_habits > 0 or bool(self.habit_stats.habits)

    @property
    def is_empty(self) -> bool:
        return self == UserContext()

    def to_wire(self) -> dict:
        """Serialize for the responder request payload."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
