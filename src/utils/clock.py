# src/utils/clock.py
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    """Shop calendar day used for slot and due-date checks"""
    return utcnow().date()
