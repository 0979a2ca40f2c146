import re
from datetime import datetime, timedelta

RELATIVE_DAYS = {"hoje": 0, "ontem": 1, "anteontem": 2}
DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d")
DAY_MONTH = re.compile(r"\d{1,2}/\d{1,2}")


def parse_date(value: str | None, now: datetime | None = None) -> datetime:
    """Turn "hoje", "ontem", "anteontem" or an explicit date into a datetime.

    ``DD/MM`` is read in the current year. Anything unparseable falls back
    to ``now``.
    """
    now = now or datetime.now()
    if not value:
        return now

    text = value.strip().lower()
    if text in RELATIVE_DAYS:
        return now - timedelta(days=RELATIVE_DAYS[text])

    # Year must be known before parsing or 29/02 is checked against 1900
    if DAY_MONTH.fullmatch(text):
        text = f"{text}/{now.year}"

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return now
