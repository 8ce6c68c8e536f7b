"""
Query Windows and Month Keys

Resolves a (year, month) request into the half-open creation window sent
upstream, and provides the typed month key used for bucketing.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, NamedTuple, Optional, Union

from woo_accounting.errors import InvalidQueryError

MIN_YEAR = 1970
MAX_YEAR = 2100
ISO_FORMAT = "%Y-%m-%dT%H:%M:%S"


class YearMonth(NamedTuple):
    """Calendar month, ordered chronologically"""
    year: int
    month: int

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def next(self) -> "YearMonth":
        if self.month == 12:
            return YearMonth(self.year + 1, 1)
        return YearMonth(self.year, self.month + 1)

    def start(self) -> datetime:
        return datetime(self.year, self.month, 1)

    @classmethod
    def from_timestamp(cls, value: Optional[str]) -> Optional["YearMonth"]:
        """Month of a `YYYY-MM...` timestamp, or None when it cannot be read"""
        if not value or len(value) < 7 or value[4] != "-":
            return None
        try:
            year, month = int(value[0:4]), int(value[5:7])
        except ValueError:
            return None
        if not 1 <= month <= 12:
            return None
        return cls(year, month)

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Window:
    """
    Half-open creation window `[start, end)`.

    Boundaries are naive and sent without `dates_are_gmt`, so WooCommerce
    reads them in the store timezone, the clock of `date_created`.
    """
    start: datetime
    end: datetime

    @property
    def after(self) -> str:
        return self.start.strftime(ISO_FORMAT)

    @property
    def before(self) -> str:
        return self.end.strftime(ISO_FORMAT)

    def months(self) -> List[YearMonth]:
        """Every calendar month covered by the window, in order"""
        current = YearMonth(self.start.year, self.start.month)
        end = YearMonth(self.end.year, self.end.month)
        months = []
        while current < end:
            months.append(current)
            current = current.next()
        return months

    def to_dict(self) -> dict:
        return {"after": self.after, "before": self.before}


def _as_int(field: str, value: Union[int, str]) -> int:
    if isinstance(value, bool):
        raise InvalidQueryError(field, "must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidQueryError(field, "must be an integer") from None


def resolve_window(year: Union[int, str], month: Optional[Union[int, str]] = None) -> Window:
    """
    Build the query window for a year, or for one month of it.

    Raises:
        InvalidQueryError: year outside 1970-2100 or month outside 1-12
    """
    year = _as_int("year", year)
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidQueryError("year", f"must be between {MIN_YEAR} and {MAX_YEAR}")

    if month is None:
        return Window(start=datetime(year, 1, 1), end=datetime(year + 1, 1, 1))

    month = _as_int("month", month)
    if not 1 <= month <= 12:
        raise InvalidQueryError("month", "must be between 1 and 12")

    current = YearMonth(year, month)
    return Window(start=current.start(), end=current.next().start())


def parse_statuses(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    Normalize a status list given as a comma-separated string or iterable.

    Statuses are trimmed and lower-cased; duplicates are dropped keeping the
    first occurrence.

    Raises:
        InvalidQueryError: no status left after normalization
    """
    if value is None:
        raise InvalidQueryError("statuses", "at least one status is required")

    parts = value.split(",") if isinstance(value, str) else list(value)
    statuses: List[str] = []
    for part in parts:
        status = str(part).strip().lower()
        if status and status not in statuses:
            statuses.append(status)

    if not statuses:
        raise InvalidQueryError("statuses", "at least one status is required")
    return statuses
