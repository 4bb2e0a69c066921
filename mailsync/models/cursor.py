"""History cursor value type."""

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional

_RUNS = re.compile(r"\d+|\D+")


def _sort_key(value: str) -> tuple:
    # digit runs order by (length, text), i.e. numerically for ids without leading zeros
    return tuple((0, len(run), run) if run.isdigit() else (1, 0, run) for run in _RUNS.findall(value))


@total_ordering
@dataclass(frozen=True)
class HistoryCursor:
    """Opaque, order-comparable marker into the provider's change feed.

    Never parsed into a number. Values are split into digit and non-digit runs and
    compared run by run, so "99" < "100" and "H99" < "H100".
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("HistoryCursor requires a non-empty string")

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, HistoryCursor):
            return NotImplemented
        return _sort_key(self.value) < _sort_key(other.value)

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["HistoryCursor"]:
        """Wrap a stored/provider value; None or blank means no cursor."""
        if raw is None or not str(raw).strip():
            return None
        return cls(str(raw).strip())
