"""
Interview stage model for the daily check-in.
"""

from enum import Enum


class Stage(str, Enum):
    """Interview stages, in the fixed order the check-in walks through."""

    MOOD = "mood"
    GOALS = "goals"
    CHALLENGES = "challenges"
    HABITS = "habits"
    GENERAL = "general"
    OPEN = "open"  # Terminal: unrestricted chat

    @property
    def position(self) -> int:
        return STAGE_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is Stage.OPEN

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]

    @property
    def icon(self) -> str:
        return _STAGE_ICONS[self]

    @property
    def progress(self) -> float:
        """Fraction of the interview reached, for a progress indicator."""
        return (self.position + 1) / len(STAGE_ORDER)

    def following(self) -> list["Stage"]:
        """Stages after this one, in order."""
        return STAGE_ORDER[self.position + 1:]

    @classmethod
    def parse(cls, value: object) -> "Stage | None":
        """Map a wire value to a Stage, or None when unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


STAGE_ORDER: list[Stage] = [
    Stage.MOOD,
    Stage.GOALS,
    Stage.CHALLENGES,
    Stage.HABITS,
    Stage.GENERAL,
    Stage.OPEN,
]

_STAGE_LABELS = {
    Stage.MOOD: "Mood",
    Stage.GOALS: "Goals",
    Stage.CHALLENGES: "Challenges",
    Stage.HABITS: "Habits",
    Stage.GENERAL: "Growth",
    Stage.OPEN: "Open",
}

_STAGE_ICONS = {
    Stage.MOOD: "😊",
    Stage.GOALS: "🎯",
    Stage.CHALLENGES: "💪",
    Stage.HABITS: "🔄",
    Stage.GENERAL: "🌱",
    Stage.OPEN: "💬",
}
