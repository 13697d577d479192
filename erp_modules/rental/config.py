"""
Rental Configuration Schema.

Prefixes that identify legacy per-service ledger markers written before
movements were recorded per line item.  Actual values come from
``erp_config`` at runtime.
"""

from dataclasses import dataclass


DEFAULT_LEGACY_START_PREFIXES = ("location #", "location_start #")
DEFAULT_LEGACY_RETURN_PREFIXES = ("location_return #",)


def _normalize(prefixes, field_name: str) -> tuple[str, ...]:
    if isinstance(prefixes, str):
        prefixes = (prefixes,)
    normalized = tuple(p.strip().lower() for p in prefixes)
    if not normalized or any(not p for p in normalized):
        raise ValueError(f"{field_name} must contain at least one non-empty prefix")
    return normalized


@dataclass(frozen=True)
class RentalConfig:
    """
    Legacy marker detection settings.

    Prefixes are matched case-insensitively against the start of the
    movement reason, after trimming whitespace.
    """

    legacy_start_prefixes: tuple[str, ...] = DEFAULT_LEGACY_START_PREFIXES
    legacy_return_prefixes: tuple[str, ...] = DEFAULT_LEGACY_RETURN_PREFIXES

    def __post_init__(self):
        object.__setattr__(
            self,
            "legacy_start_prefixes",
            _normalize(self.legacy_start_prefixes, "legacy_start_prefixes"),
        )
        object.__setattr__(
            self,
            "legacy_return_prefixes",
            _normalize(self.legacy_return_prefixes, "legacy_return_prefixes"),
        )
        overlap = set(self.legacy_start_prefixes) & set(self.legacy_return_prefixes)
        if overlap:
            raise ValueError(
                f"Prefixes cannot mark both start and return: {sorted(overlap)}"
            )
