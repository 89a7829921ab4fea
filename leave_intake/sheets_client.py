"""
Spreadsheet backends for the roster and the ledger.

GoogleSheetsClient talks to Google Sheets through gspread, one spreadsheet
per grade and one worksheet per class, with every call behind a circuit
breaker. InMemorySheetsClient keeps the same layout in a dict and is used
when no Google credentials are configured.
"""

import copy
import json
import logging

import gspread
from google.oauth2.service_account import Credentials
from gspread.exceptions import GSpreadException, WorksheetNotFound

from data.sample_roster import build_sample_sheets
from leave_intake.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from leave_intake.config import Settings, settings
from leave_intake.gateways import (
    LedgerError,
    TableSnapshot,
    column_letter,
    name_column_index,
    unique_names,
)
from leave_intake.observability import trace_span

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Unknown grades and class worksheets come from user input, not from a failing API
LOOKUP_ERRORS = (LedgerError,)


def _students_from_values(values: list[list[str]]) -> list[str]:
    snapshot = TableSnapshot.from_values(values)
    name_col = name_column_index(snapshot.header)
    if name_col is None:
        return []
    return unique_names([snapshot.cell(i, name_col) for i in range(len(snapshot.rows))])


class GoogleSheetsClient:
    """Roster and ledger gateway backed by Google Sheets."""

    backend = "google-sheets"

    def __init__(
        self,
        grade_sheets: dict[str, str],
        credentials: Credentials,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        """
        Args:
            grade_sheets: Grade name -> spreadsheet id
            credentials: Service account credentials with the spreadsheets scope
            circuit_breaker: Breaker shared by all Sheets calls
        """
        self.grade_sheets = grade_sheets
        self.gc = gspread.authorize(credentials)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="SheetsCircuitBreaker", excluded_exceptions=LOOKUP_ERRORS
        )
        logger.info(f"Google Sheets client initialized for grades: {list(grade_sheets)}")

    @classmethod
    def from_settings(cls, config: Settings) -> "GoogleSheetsClient":
        if config.google_service_account:
            credentials = Credentials.from_service_account_info(
                json.loads(config.google_service_account), scopes=SCOPES
            )
        else:
            credentials = Credentials.from_service_account_file(
                config.google_credentials_file, scopes=SCOPES
            )

        breaker = CircuitBreaker(
            failure_threshold=config.circuit_breaker_failure_threshold,
            timeout=config.circuit_breaker_timeout,
            name="SheetsCircuitBreaker",
            excluded_exceptions=LOOKUP_ERRORS,
        )
        return cls(config.grade_sheets, credentials, breaker)

    def _spreadsheet(self, grade: str) -> gspread.Spreadsheet:
        sheet_id = self.grade_sheets.get(grade)
        if not sheet_id:
            raise LedgerError(f"No spreadsheet configured for grade '{grade}'")
        return self.gc.open_by_key(sheet_id)

    def _worksheet(self, grade: str, class_name: str) -> gspread.Worksheet:
        try:
            return self._spreadsheet(grade).worksheet(class_name)
        except WorksheetNotFound as e:
            raise LedgerError(f"Class '{class_name}' not found in grade '{grade}'") from e

    def list_classes(self, grade: str) -> list[str]:
        with trace_span("sheets.list_classes", grade=grade):
            try:
                worksheets = self.circuit_breaker.call(
                    lambda: self._spreadsheet(grade).worksheets()
                )
            except Exception as e:
                logger.error(f"Failed to list classes for grade {grade}: {e}")
                return []
        return [ws.title for ws in worksheets]

    def list_students(self, grade: str, class_name: str) -> list[str]:
        with trace_span("sheets.list_students", grade=grade, class_name=class_name):
            try:
                values = self.circuit_breaker.call(
                    lambda: self._worksheet(grade, class_name).get_all_values()
                )
            except Exception as e:
                logger.error(f"Failed to list students for {grade}/{class_name}: {e}")
                return []
        return _students_from_values(values)

    def read_table(self, grade: str, class_name: str) -> TableSnapshot:
        with trace_span("sheets.read_table", grade=grade, class_name=class_name):
            try:
                values = self.circuit_breaker.call(
                    lambda: self._worksheet(grade, class_name).get_all_values()
                )
            except (GSpreadException, CircuitBreakerOpenError) as e:
                raise LedgerError(f"Could not read {grade}/{class_name}: {e}") from e
        return TableSnapshot.from_values(values)

    def write_cell(self, grade: str, class_name: str, row: int, column: int, value: str) -> None:
        cell = f"{column_letter(column)}{row}"
        with trace_span("sheets.write_cell", grade=grade, class_name=class_name, cell=cell):
            try:
                self.circuit_breaker.call(
                    lambda: self._worksheet(grade, class_name).update_acell(cell, value)
                )
            except (GSpreadException, CircuitBreakerOpenError) as e:
                raise LedgerError(f"Could not write {grade}/{class_name}!{cell}: {e}") from e

    def get_circuit_breaker_state(self) -> dict | None:
        return self.circuit_breaker.get_state()


class InMemorySheetsClient:
    """Roster and ledger gateway over {grade: {class: worksheet values}}."""

    backend = "in-memory"

    def __init__(self, sheets: dict[str, dict[str, list[list[str]]]]):
        self.sheets = copy.deepcopy(sheets)

    def values(self, grade: str, class_name: str) -> list[list[str]]:
        try:
            return self.sheets[grade][class_name]
        except KeyError as e:
            raise LedgerError(f"Class '{class_name}' not found in grade '{grade}'") from e

    def list_classes(self, grade: str) -> list[str]:
        return list(self.sheets.get(grade, {}))

    def list_students(self, grade: str, class_name: str) -> list[str]:
        try:
            return _students_from_values(self.values(grade, class_name))
        except LedgerError as e:
            logger.error(f"Failed to list students: {e}")
            return []

    def read_table(self, grade: str, class_name: str) -> TableSnapshot:
        return TableSnapshot.from_values(copy.deepcopy(self.values(grade, class_name)))

    def write_cell(self, grade: str, class_name: str, row: int, column: int, value: str) -> None:
        values = self.values(grade, class_name)
        while len(values) < row:
            values.append([])
        target = values[row - 1]
        if len(target) < column:
            target.extend([""] * (column - len(target)))
        target[column - 1] = value

    def get_circuit_breaker_state(self) -> dict | None:
        return None


def build_sheets_client(config: Settings = settings):
    """Google Sheets when credentials are configured, sample data otherwise."""
    if config.has_google_credentials:
        return GoogleSheetsClient.from_settings(config)

    logger.warning("No Google credentials configured, using in-memory sample sheets")
    return InMemorySheetsClient(build_sample_sheets(timezone=config.timezone))


# Global sheets client instance
sheets_client = build_sheets_client()
