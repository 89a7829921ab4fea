"""
Conflict-checked leave recording.

The ledger is a worksheet per class: a header row with a name column and
one column per date (ISO strings), and one row per student. Recording a
leave means finding the student's cell for the date and overwriting it,
unless the cell already says the student attended or is already on leave.

The check and the write are two separate Sheets calls with no lock in
between. Two parents recording the same student on the same date at the
same moment can both pass the check; the last write wins.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from leave_intake.gateways import LedgerGateway, column_letter, name_column_index
from leave_intake.observability import trace_span

logger = logging.getLogger(__name__)

PRESENT_MARKERS = ("出席", "present")
LEAVE_MARKERS = ("請假", "leave")

DEFAULT_LEAVE_STATUS = "請假"

# Leave-type answer -> status string written into the ledger
LEAVE_TYPES: dict[str, str] = {
    "sick": "請假(病假)",
    "病假": "請假(病假)",
    "personal": "請假(事假)",
    "事假": "請假(事假)",
    "other": DEFAULT_LEAVE_STATUS,
    "其他": DEFAULT_LEAVE_STATUS,
}


def leave_status_for(label: str) -> str:
    """Ledger status for a leave-type answer; unknown answers get the generic status."""
    return LEAVE_TYPES.get(label.strip().lower(), DEFAULT_LEAVE_STATUS)


class RecordErrorCode(str, Enum):
    MISSING_NAME_COLUMN = "missing-name-column"
    MISSING_DATE_COLUMN = "missing-date-column"
    STUDENT_NOT_FOUND = "student-not-found"
    ALREADY_PRESENT = "already-present"
    ALREADY_ON_LEAVE = "already-on-leave"


class RecordError(Exception):
    """A leave could not be recorded for a reason the caller must be told."""

    def __init__(self, code: RecordErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class LeaveRecord:
    grade: str
    class_name: str
    student_name: str
    leave_date: str
    status: str
    cell: str


class LeaveRecorder:
    def __init__(self, ledger: LedgerGateway):
        self.ledger = ledger

    def record(
        self,
        grade: str,
        class_name: str,
        student_name: str,
        leave_date: str,
        status: str = DEFAULT_LEAVE_STATUS,
    ) -> LeaveRecord:
        """
        Mark student_name as on leave for leave_date.

        Args:
            grade: Grade (spreadsheet)
            class_name: Class (worksheet)
            student_name: Exact name as written in the name column
            leave_date: ISO date, must equal a header cell exactly
            status: Status string to write

        Returns:
            LeaveRecord describing the written cell

        Raises:
            RecordError: If the sheet layout or the current cell forbids the write
            LedgerError: If the ledger backend fails
        """
        with trace_span("record_leave", grade=grade, class_name=class_name, date=leave_date):
            snapshot = self.ledger.read_table(grade, class_name)

            name_col = name_column_index(snapshot.header)
            if name_col is None:
                raise RecordError(
                    RecordErrorCode.MISSING_NAME_COLUMN,
                    f"The sheet for {grade} {class_name} has no name column.",
                )

            if leave_date not in snapshot.header:
                raise RecordError(
                    RecordErrorCode.MISSING_DATE_COLUMN,
                    f"There is no column for {leave_date}. "
                    "Please ask the teacher to add the date column to the sheet.",
                )
            date_col = snapshot.header.index(leave_date)

            row_index = next(
                (
                    i
                    for i in range(len(snapshot.rows))
                    if snapshot.cell(i, name_col) == student_name
                ),
                None,
            )
            if row_index is None:
                raise RecordError(
                    RecordErrorCode.STUDENT_NOT_FOUND,
                    f"Student '{student_name}' was not found in {grade} {class_name}.",
                )

            current = snapshot.cell(row_index, date_col)
            if any(marker in current for marker in PRESENT_MARKERS):
                raise RecordError(
                    RecordErrorCode.ALREADY_PRESENT,
                    f"{student_name} has already checked in on {leave_date} "
                    f"({current}); leave cannot be requested.",
                )
            if any(marker in current for marker in LEAVE_MARKERS):
                raise RecordError(
                    RecordErrorCode.ALREADY_ON_LEAVE,
                    f"{student_name} is already on leave on {leave_date}.",
                )

            # Sheet rows are 1-based and the header occupies row 1
            sheet_row = row_index + 2
            sheet_col = date_col + 1
            self.ledger.write_cell(grade, class_name, sheet_row, sheet_col, status)

        record = LeaveRecord(
            grade=grade,
            class_name=class_name,
            student_name=student_name,
            leave_date=leave_date,
            status=status,
            cell=f"{column_letter(sheet_col)}{sheet_row}",
        )
        logger.info(
            f"Recorded leave: grade={grade}, class={class_name}, "
            f"student={student_name}, date={leave_date}, cell={record.cell}"
        )
        return record
