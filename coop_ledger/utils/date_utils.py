"""Date manipulation utilities"""

from datetime import date, datetime
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(value: str | date | datetime) -> date:
    """Parse an ISO date or timestamp (as stored in snapshots) down to its calendar day"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        raise ValueError("parse_date: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_date: empty string")
    return date_parser.isoparse(s).date()


def to_ymd(d: date) -> str:
    """Format as YYYY-MM-DD (the key format of collection periods)"""
    return d.isoformat()


def add_months(d: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month"""
    return d + relativedelta(months=months)
