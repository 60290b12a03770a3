"""Normalization of uploaded address rows."""

import re
from typing import Any, Iterable, List, Mapping, Optional

from geocode_jobs.models import NormalizedRow, Sex

_BIRTH_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_SEX_ALIASES = {
    "male": Sex.male,
    "m": Sex.male,
    "female": Sex.female,
    "f": Sex.female,
}


def _as_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def normalize_birth(value: Any) -> Optional[str]:
    """Return ``value`` if it looks like YYYY-MM-DD, otherwise None."""
    text = _as_text(value)
    return text if _BIRTH_RE.match(text) else None


def normalize_sex(value: Any) -> Optional[Sex]:
    """Map male/m/female/f (any case) to ``Sex``; anything else is None."""
    return _SEX_ALIASES.get(_as_text(value).lower())


def normalize_rows(rows: Iterable[Mapping[str, Any]]) -> List[NormalizedRow]:
    """Normalize upload rows, dropping those without an address.

    Input order is preserved.
    """
    normalized = []
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        address = _as_text(row.get("address"))
        if not address:
            continue
        normalized.append(
            NormalizedRow(
                address=address,
                birth=normalize_birth(row.get("birth")),
                sex=normalize_sex(row.get("sex")),
            )
        )
    return normalized
