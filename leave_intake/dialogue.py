"""
The leave request dialogue.

A caller walks through grade -> class -> student -> date -> leave type, one
step per message. The engine owns the transitions; the session only ever
moves forward through conversation_state.STEP_TRANSITIONS, and is dropped
when the leave is recorded, the caller cancels, a lookup comes back empty,
or the idle sweeper evicts it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from zoneinfo import ZoneInfo

from leave_intake.config import settings
from leave_intake.conversation_state import ConversationSession, Step
from leave_intake.conversation_store import ConversationStore
from leave_intake.date_parser import format_display_date, parse_leave_date, reference_today
from leave_intake.gateways import LedgerError, LedgerGateway, RosterGateway
from leave_intake.observability import trace_span
from leave_intake.recorder import LeaveRecorder, RecordError, leave_status_for
from leave_intake.replies import Reply, quick_reply, text_reply
from leave_intake.sheets_client import sheets_client

logger = logging.getLogger(__name__)

# Chinese trigger matches anywhere in the message, English ones only as whole commands
TRIGGER_KEYWORDS = ("請假",)
TRIGGER_COMMANDS = {"leave", "request leave", "request leave again"}
CANCEL_COMMANDS = {"cancel", "取消"}
HELP_COMMANDS = {"help", "說明"}
IDENTITY_COMMANDS = {"my id", "我的id", "id"}
DONE_COMMANDS = {"done", "完成"}

CANCEL_OPTION = "Cancel"
MENU_OPTIONS = ["Request leave", "My ID", "Help"]
LEAVE_TYPE_OPTIONS = ["Sick", "Personal", "Other", CANCEL_OPTION]
FOLLOW_UP_OPTIONS = ["Request leave again", "Help", "Done"]

# One chip is kept free for Cancel
MAX_CLASS_CHIPS = 12


class EventKind(str, Enum):
    FOLLOW = "follow"
    TEXT = "text"
    OTHER = "other"


@dataclass(frozen=True)
class InboundEvent:
    caller_id: str
    kind: EventKind
    text: str = ""
    reply_token: str | None = None


class DialogueEngine:
    """
    Step state machine for the leave request form.

    Responsibilities:
    - route each text message to the handler of the caller's current step
    - answer cancel, help and identity requests from any step
    - turn every recording or lookup failure into a reply and drop the session
    """

    def __init__(
        self,
        store: ConversationStore,
        roster: RosterGateway,
        ledger: LedgerGateway,
        grades: list[str],
        timezone: str = "Asia/Taipei",
        now: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.roster = roster
        self.recorder = LeaveRecorder(ledger)
        self.grades = list(grades)
        self.timezone = timezone
        self.now = now or (lambda: datetime.now(ZoneInfo(timezone)))

        self._step_handlers: dict[Step, Callable[[ConversationSession, str], list[Reply]]] = {
            Step.SELECT_GRADE: self._on_grade,
            Step.SELECT_CLASS: self._on_class,
            Step.SELECT_STUDENT: self._on_student,
            Step.SELECT_LEAVE_DATE: self._on_leave_date,
            Step.SELECT_LEAVE_TYPE: self._on_leave_type,
        }

    def handle_event(self, event: InboundEvent) -> list[Reply]:
        """
        Process one inbound event to completion.

        Returns:
            Replies to send back; empty for events the bot ignores
        """
        if event.kind == EventKind.FOLLOW:
            logger.info(f"New follower: {event.caller_id}")
            return self._welcome(event.caller_id)

        if event.kind != EventKind.TEXT:
            return []

        with trace_span("dialogue_turn", caller=event.caller_id):
            try:
                return self.handle_text(event.caller_id, event.text)
            except Exception as e:
                logger.error(f"Turn failed for {event.caller_id}: {e}", exc_info=True)
                self.store.delete(event.caller_id)
                return [
                    text_reply(
                        "Sorry, something went wrong while handling your request. "
                        "Please start again by sending 'leave'."
                    )
                ]

    def handle_text(self, caller_id: str, text: str) -> list[Reply]:
        text = text.strip()
        command = text.lower()
        logger.info(f"Message from {caller_id}: {text!r}")

        session = self.store.get(caller_id)

        if command in CANCEL_COMMANDS:
            return self._cancel(caller_id, session)
        if command in HELP_COMMANDS:
            return [
                text_reply(self.help_text()),
                quick_reply("What would you like to do?", MENU_OPTIONS[:2]),
            ]
        if command in IDENTITY_COMMANDS:
            return [
                text_reply(f"Your LINE user ID:\n{caller_id}"),
                quick_reply("Anything else?", [MENU_OPTIONS[0], MENU_OPTIONS[2]]),
            ]

        if session is None:
            return self._on_idle(caller_id, command)

        return self._step_handlers[session.step](session, text)

    def help_text(self) -> str:
        return (
            "Leave request service\n\n"
            "Request a single day of leave for a student, today or up to one month ahead.\n"
            f"Grades: {', '.join(self.grades)}\n\n"
            "Steps:\n"
            "1. Send 'leave' to start\n"
            "2. Choose the grade\n"
            "3. Choose the class\n"
            "4. Enter the student's full name exactly as registered\n"
            "5. Enter the leave date\n"
            "6. Choose the leave type (sick / personal / other)\n\n"
            "Date examples: today, tomorrow, 6/20, 06/20, 2026/6/20, 2026-06-20,\n"
            "6月20日, 六月二十日\n\n"
            "Other commands:\n"
            "- 'my id': show your LINE user ID\n"
            "- 'help': show this message\n"
            "- 'cancel': stop the current request\n\n"
            "Notes:\n"
            "- Only single-day leave is supported; contact the teacher for longer absences\n"
            "- Students who have already checked in cannot be put on leave\n"
            "- Past dates cannot be requested"
        )

    # ---- side commands ----

    def _welcome(self, caller_id: str) -> list[Reply]:
        return [
            text_reply(
                "Welcome to the leave request service.\n\n"
                f"Your LINE user ID: {caller_id}\n"
                "Please give this ID to the class teacher for verification."
            ),
            text_reply(self.help_text()),
            quick_reply("How can I help?", MENU_OPTIONS),
        ]

    def _cancel(self, caller_id: str, session: ConversationSession | None) -> list[Reply]:
        if session is None:
            return [
                text_reply(
                    "There is no leave request in progress.\n\n"
                    "Send 'leave' to start one."
                )
            ]

        self.store.delete(caller_id)
        logger.info(f"Leave request cancelled by {caller_id} at step {session.step.value}")
        return [
            text_reply(
                "The leave request has been cancelled.\n\n"
                "Send 'leave' whenever you want to start again."
            )
        ]

    def _abort(self, session: ConversationSession, message: str) -> list[Reply]:
        self.store.delete(session.caller_id)
        logger.warning(
            f"empty-roster: aborting request for {session.caller_id} "
            f"(grade={session.grade}, step={session.step.value})"
        )
        return [text_reply(message)]

    def _timed_out(self, session: ConversationSession) -> list[Reply]:
        logger.info(f"Turn for {session.caller_id} finished after its session was evicted")
        return [quick_reply("This leave request timed out. Please start again.", MENU_OPTIONS)]

    # ---- steps ----

    def _on_idle(self, caller_id: str, command: str) -> list[Reply]:
        if command in TRIGGER_COMMANDS or any(k in command for k in TRIGGER_KEYWORDS):
            session = ConversationSession(caller_id=caller_id, step=Step.SELECT_GRADE)
            self.store.touch(session)
            logger.info(f"Leave request started by {caller_id}")
            return [quick_reply("Which grade is the student in?", [*self.grades, CANCEL_OPTION])]

        if command in DONE_COMMANDS:
            return [text_reply("Thank you for using the leave request service!")]

        return [quick_reply("How can I help?", MENU_OPTIONS)]

    def _on_grade(self, session: ConversationSession, text: str) -> list[Reply]:
        if text not in self.grades:
            return [
                quick_reply("Please choose one of these grades:", [*self.grades, CANCEL_OPTION])
            ]

        classes = self.roster.list_classes(text)
        if not classes:
            return self._abort(session, "Could not load the class list. Please try again later.")

        session.advance(text, now=self.store.clock())
        if not self.store.save(session):
            return self._timed_out(session)

        if len(classes) > MAX_CLASS_CHIPS:
            listing = "\n".join(classes)
            return [
                text_reply(
                    f"{text} has {len(classes)} classes. Please type the class name:\n\n"
                    f"{listing}\n\nOr send 'cancel' to stop."
                )
            ]
        return [quick_reply("Please choose the class:", [*classes, CANCEL_OPTION])]

    def _on_class(self, session: ConversationSession, text: str) -> list[Reply]:
        students = self.roster.list_students(session.grade, text)
        if not students:
            return self._abort(session, "That class could not be found or has no students.")

        session.advance(text, now=self.store.clock())
        if not self.store.save(session):
            return self._timed_out(session)
        return [
            text_reply("Please enter the name of the student who needs leave:"),
            quick_reply(
                "Tip: type the student's full name exactly as registered.\n\n"
                "Tap Cancel to stop the request.",
                [CANCEL_OPTION],
            ),
        ]

    def _on_student(self, session: ConversationSession, text: str) -> list[Reply]:
        session.advance(text, now=self.store.clock())
        if not self.store.save(session):
            return self._timed_out(session)

        today = self._today()
        return [
            quick_reply(
                "Please enter the leave date.\n\n"
                "Accepted formats:\n"
                f"- {today:%m/%d} or {today.month}月{today.day}日\n"
                f"- {today:%Y/%m/%d}\n"
                f"- {today:%Y-%m-%d}\n"
                "- today, tomorrow\n\n"
                "Only today or later, up to one month ahead.",
                ["Today", "Tomorrow", CANCEL_OPTION],
            )
        ]

    def _on_leave_date(self, session: ConversationSession, text: str) -> list[Reply]:
        result = parse_leave_date(text, self.now(), self.timezone)
        if not result.valid:
            logger.info(
                f"Rejected leave date {text!r} from {session.caller_id}: {result.reason.value}"
            )
            return [
                text_reply(
                    f"{result.message}\n\n"
                    f"Please enter the date again (for example {self._today():%m/%d})."
                )
            ]

        session.advance(result.date, now=self.store.clock())
        if not self.store.save(session):
            return self._timed_out(session)
        return [
            quick_reply(
                f"Leave date: {result.display}\n\nWhat type of leave is it?", LEAVE_TYPE_OPTIONS
            )
        ]

    def _on_leave_type(self, session: ConversationSession, text: str) -> list[Reply]:
        status = leave_status_for(text)
        try:
            record = self.recorder.record(
                session.grade,
                session.class_name,
                session.student_name,
                session.leave_date,
                status,
            )
        except RecordError as e:
            logger.warning(f"Leave not recorded for {session.caller_id}: {e.code.value}")
            return [text_reply(f"Leave request failed.\n\nReason: {e.message}")]
        except LedgerError as e:
            logger.error(f"Ledger unavailable for {session.caller_id}: {e}")
            return [
                text_reply(
                    "Leave request failed.\n\n"
                    "Reason: the attendance sheet could not be updated. Please try again later."
                )
            ]
        finally:
            self.store.delete(session.caller_id)

        display = format_display_date(date.fromisoformat(record.leave_date))
        return [
            text_reply(
                "Leave recorded.\n\n"
                f"Date: {record.leave_date} ({display})\n"
                f"Student: {record.student_name}\n"
                f"Class: {record.grade} {record.class_name}\n"
                f"Type: {text}\n\n"
                "The attendance sheet has been updated."
            ),
            quick_reply("Anything else?", FOLLOW_UP_OPTIONS),
        ]

    def _today(self) -> date:
        return reference_today(self.now(), ZoneInfo(self.timezone))


# Global engine instance
dialogue_engine = None


def get_engine() -> DialogueEngine:
    """Get or create the global dialogue engine."""
    global dialogue_engine
    if dialogue_engine is None:
        dialogue_engine = DialogueEngine(
            store=ConversationStore(idle_timeout_seconds=settings.session_idle_timeout_seconds),
            roster=sheets_client,
            ledger=sheets_client,
            grades=list(settings.grade_sheets),
            timezone=settings.timezone,
        )
    return dialogue_engine
