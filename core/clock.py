"""Horodatages UTC naïfs et bornes de journée dans le fuseau de la boutique.

Le ledger stocke toutes les dates en UTC sans tzinfo ; la notion de « jour »
(promotions du jour, clé de dédoublonnage) s'évalue dans le fuseau métier.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from core.errors import ValidationError

Clock = Callable[[], datetime]

_MONTH_RE = re.compile(r"^(\d{1,2})-(\d{4})$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime, tz_name: str) -> datetime:
    """Normalise une date (naïve = heure locale métier) en UTC naïf."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(tz_name))
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_day(value: datetime, tz_name: str) -> date:
    """Jour calendaire, dans le fuseau métier, d'un horodatage UTC naïf."""
    aware = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value
    return aware.astimezone(ZoneInfo(tz_name)).date()


def day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """Retourne ``[début, fin)`` du jour ``day`` en UTC naïf."""
    start = datetime.combine(day, time.min)
    return to_utc_naive(start, tz_name), to_utc_naive(start + timedelta(days=1), tz_name)


def parse_month(value: str) -> tuple[int, int]:
    """``"MM-YYYY"`` -> ``(mois, année)``."""
    match = _MONTH_RE.match(value.strip()) if value else None
    if not match:
        raise ValidationError(f"Mois invalide (attendu MM-YYYY): {value!r}")
    month, year = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Mois invalide: {month}")
    return month, year


def month_bounds(month: int, year: int, tz_name: str) -> tuple[datetime, datetime]:
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return day_bounds(start, tz_name)[0], day_bounds(end, tz_name)[0]


__all__ = ["Clock", "day_bounds", "local_day", "month_bounds", "parse_month", "to_utc_naive", "utcnow"]
