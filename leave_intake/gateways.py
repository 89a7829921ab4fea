"""
Contracts the dialogue needs from the spreadsheet backend.

RosterGateway answers "which classes / students exist", LedgerGateway reads
and writes attendance cells. Both are implemented by the clients in
leave_intake.sheets_client.
"""

from dataclasses import dataclass, field
from typing import Protocol


class LedgerError(RuntimeError):
    """Raised when the ledger backend cannot be read or written."""


@dataclass
class TableSnapshot:
    """Header row plus data rows of one class worksheet."""

    header: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)

    @classmethod
    def from_values(cls, values: list[list[str]]) -> "TableSnapshot":
        if not values:
            return cls()
        header, *rows = values
        return cls(header=list(header), rows=[list(row) for row in rows])

    def cell(self, row_index: int, column_index: int) -> str:
        """Value at a 0-based data row / column; short rows read as empty."""
        row = self.rows[row_index]
        if column_index >= len(row):
            return ""
        return row[column_index] or ""


class RosterGateway(Protocol):
    def list_classes(self, grade: str) -> list[str]:
        """Class names of a grade, empty when the lookup fails."""
        ...

    def list_students(self, grade: str, class_name: str) -> list[str]:
        """Deduplicated student names in first-occurrence order."""
        ...


class LedgerGateway(Protocol):
    def read_table(self, grade: str, class_name: str) -> TableSnapshot:
        ...

    def write_cell(
        self, grade: str, class_name: str, row: int, column: int, value: str
    ) -> None:
        """Write value at a 1-based sheet row and column."""
        ...


NAME_HEADERS = ("姓名", "Name")


def name_column_index(header: list[str]) -> int | None:
    """Index of the first header cell that labels the student name column."""
    for index, label in enumerate(header):
        if label in NAME_HEADERS:
            return index
    return None


def unique_names(names: list[str]) -> list[str]:
    """Drop blanks and duplicates, keeping first-occurrence order."""
    return list(dict.fromkeys(name for name in names if name and name.strip()))


def column_letter(column: int) -> str:
    """1-based column number to its A1 letters: 1 -> A, 26 -> Z, 27 -> AA."""
    letters = ""
    while column > 0:
        column, remainder = divmod(column - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters
