"""
Per-caller dialogue state.

The intake form asks for one field per step. The session only moves
forward through STEP_TRANSITIONS, which ties each step to the single field
it collects, so a field can never be filled before its step is reached.
"""

from dataclasses import dataclass
from enum import Enum


class Step(str, Enum):
    IDLE = "idle"
    SELECT_GRADE = "select_grade"
    SELECT_CLASS = "select_class"
    SELECT_STUDENT = "select_student"
    SELECT_LEAVE_DATE = "select_leave_date"
    SELECT_LEAVE_TYPE = "select_leave_type"


# step -> (field the accepted input is stored in, next step)
STEP_TRANSITIONS: dict[Step, tuple[str, Step]] = {
    Step.SELECT_GRADE: ("grade", Step.SELECT_CLASS),
    Step.SELECT_CLASS: ("class_name", Step.SELECT_STUDENT),
    Step.SELECT_STUDENT: ("student_name", Step.SELECT_LEAVE_DATE),
    Step.SELECT_LEAVE_DATE: ("leave_date", Step.SELECT_LEAVE_TYPE),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a session is advanced from a step that collects nothing."""


@dataclass
class ConversationSession:
    caller_id: str
    step: Step = Step.SELECT_GRADE
    grade: str | None = None
    class_name: str | None = None
    student_name: str | None = None
    leave_date: str | None = None
    last_activity_at: float = 0.0

    def advance(self, value: str, now: float) -> Step:
        """Store value in the current step's field and move to the next step."""
        if self.step not in STEP_TRANSITIONS:
            raise InvalidTransitionError(f"No transition out of step '{self.step.value}'")

        field_name, next_step = STEP_TRANSITIONS[self.step]
        setattr(self, field_name, value)
        self.step = next_step
        self.last_activity_at = now
        return next_step

    def filled_fields(self) -> list[str]:
        return [
            name
            for name in ("grade", "class_name", "student_name", "leave_date")
            if getattr(self, name) is not None
        ]
