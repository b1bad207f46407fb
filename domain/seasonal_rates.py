"""Seasonal Rate Table

Active seasonal rates of one property kept sorted by start date, so lookups
bisect to the rates that started on or before a night instead of scanning
the whole table.
"""
from bisect import bisect_right
from datetime import date
from typing import Dict, Iterable, List, Optional

from domain.entities import SeasonalRate


class SeasonalRateTable:
    """Sorted view over a property's active seasonal rates"""

    def __init__(self, rates: Iterable[SeasonalRate]):
        self._rates: List[SeasonalRate] = sorted(
            (r for r in rates if r.is_active), key=lambda r: r.start_date
        )
        self._starts: List[date] = [r.start_date for r in self._rates]

    def __len__(self) -> int:
        return len(self._rates)

    def __iter__(self):
        return iter(self._rates)

    def _started_by(self, day: date) -> List[SeasonalRate]:
        return self._rates[:bisect_right(self._starts, day)]

    def governing(self, night: date) -> Optional[SeasonalRate]:
        """Highest-precedence rate that prices this night"""
        candidates = [r for r in self._started_by(night) if r.applies_to(night)]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.precedence)

    def intersecting(self, start: date, end: date) -> List[SeasonalRate]:
        """Rates covering any night of the half-open stay [start, end)"""
        return [r for r in self._rates[:bisect_right(self._starts, end)] if r.intersects(start, end)]

    def governing_for_range(self, start: date, end: date) -> Optional[SeasonalRate]:
        """Highest-precedence rate touching the stay, for minimum-stay rules"""
        candidates = self.intersecting(start, end)
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.precedence)

    def effective_rates(self, nights: Iterable[date]) -> Dict[date, Optional[SeasonalRate]]:
        """Rate calendar: the governing rate for each night"""
        return {night: self.governing(night) for night in nights}
