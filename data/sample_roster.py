"""
Sample class sheets for local development.
In production the sheets live in Google Sheets, one spreadsheet per grade.

Each class is stored as raw worksheet values: header row first, then one row
per student. Date columns are generated around the current date so the
dialogue can be exercised end to end without editing this file.
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

NAME_HEADER = "姓名"

SAMPLE_STUDENTS = {
    "國中": {
        "八年級A班": ["王小明", "陳怡君", "林志豪"],
        "九年級B班": ["張家瑋", "黃詩涵"],
    },
    "先修": {
        "先修一班": ["李佳穎", "吳承恩", "李佳穎"],
    },
    "兒美": {
        "兒美初級": ["Amy Lin", "Ben Chen"],
        "兒美進階": ["Cindy Wu"],
    },
}


def build_sample_sheets(
    start: date | None = None, days: int = 35, timezone: str = "Asia/Taipei"
) -> dict[str, dict[str, list[list[str]]]]:
    """
    Return {grade: {class: worksheet values}} with one column per day from start.

    start defaults to today in `timezone`, the zone the date parser reads "today" in.
    """
    start = start or datetime.now(ZoneInfo(timezone)).date()
    date_headers = [(start + timedelta(days=offset)).isoformat() for offset in range(days)]

    sheets: dict[str, dict[str, list[list[str]]]] = {}
    for grade, classes in SAMPLE_STUDENTS.items():
        sheets[grade] = {}
        for class_name, students in classes.items():
            header = [NAME_HEADER, *date_headers]
            rows = [[student] + [""] * len(date_headers) for student in students]
            sheets[grade][class_name] = [header, *rows]
    return sheets
