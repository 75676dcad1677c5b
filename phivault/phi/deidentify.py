"""Read-path de-identification.

Two independent views are derived from vault data:

- ``compute_demographics`` generalizes a structured vault entry to age,
  birth year, sex, and state/country-level location.
- ``deidentify_string`` replaces embedded vault reference tokens with
  placeholders (``[Name]``, a bare year, ``[Date]``, ``[Redacted]``).

Neither performs storage I/O; callers pass the vault entries in.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Iterable, Mapping

from dateutil import parser as date_parser

from phivault.phi.ports import DeidentifiedProfile, StructuredVaultEntry, VaultEntry
from phivault.phi.tokens import TOKEN_PREFIX, VAULT_TOKEN_RE

logger = logging.getLogger(__name__)

NAME_PLACEHOLDER = "[Name]"
DATE_PLACEHOLDER = "[Date]"
REDACTED_PLACEHOLDER = "[Redacted]"

# Default datetime for dateutil; a parsed year of 1 means the text had no year.
_NO_YEAR_DEFAULT = dt.datetime(1, 1, 1)


def _field(entry: StructuredVaultEntry | Mapping[str, Any], name: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


def _coerce_year(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def parse_dob(value: Any) -> dt.date | None:
    """Parse a stored date of birth (ISO date or datetime); None if unusable."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return dt.date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        parsed = date_parser.parse(text, default=_NO_YEAR_DEFAULT)
    except (ValueError, OverflowError):
        return None
    return parsed.date() if parsed.year != 1 else None


def calculate_age(
    full_dob: Any = None,
    birth_year: Any = None,
    today: dt.date | None = None,
) -> int | None:
    """Exact age from a DOB, else a coarse age from the birth year alone."""
    today = today or dt.date.today()

    dob = parse_dob(full_dob)
    if dob is not None:
        age = today.year - dob.year
        if (today.month, today.day) < (dob.month, dob.day):
            age -= 1
        return age

    year = _coerce_year(birth_year)
    if year is not None:
        return today.year - year
    return None


def generalize_location(address: Any) -> str | None:
    """Return "<state>, <country>", "<state>", or "<country>"; never finer detail."""
    if not isinstance(address, Mapping):
        return None
    parts = [
        str(address[key]).strip()
        for key in ("state", "country")
        if address.get(key) and str(address[key]).strip()
    ]
    return ", ".join(parts) if parts else None


def compute_demographics(
    entry: StructuredVaultEntry | Mapping[str, Any],
    today: dt.date | None = None,
) -> DeidentifiedProfile:
    """Generalize a structured vault entry (or raw PHI payload) to a profile."""
    birth_year = _coerce_year(_field(entry, "birth_year"))
    sex = _field(entry, "sex")
    return DeidentifiedProfile(
        age=calculate_age(_field(entry, "full_dob"), birth_year, today=today),
        birth_year=birth_year,
        sex=sex if isinstance(sex, str) and sex else None,
        location=generalize_location(_field(entry, "address")),
    )


def deidentify_value(value: Any, phi_type: str | None) -> str:
    """Placeholder for one vaulted value, by PHI type."""
    if phi_type == "PERSON":
        return NAME_PLACEHOLDER
    if phi_type == "DATE_TIME":
        if isinstance(value, str) and value.strip():
            try:
                parsed = date_parser.parse(value, default=_NO_YEAR_DEFAULT)
            except (ValueError, OverflowError):
                return DATE_PLACEHOLDER
            if parsed.year != 1:
                return f"{parsed.year:04d}"
        return DATE_PLACEHOLDER
    return REDACTED_PLACEHOLDER


def _index_entries(entries: Iterable[VaultEntry] | Mapping[str, VaultEntry] | None) -> dict[str, VaultEntry]:
    if not entries:
        return {}
    if isinstance(entries, Mapping):
        return dict(entries)
    return {entry.id: entry for entry in entries}


def deidentify_string(
    text: str,
    entries: Iterable[VaultEntry] | Mapping[str, VaultEntry] | None,
) -> str:
    """Replace every vault reference token in *text* with a placeholder.

    Tokens whose id is not among *entries* become ``[Redacted]``; a token is
    never left in the output and the vaulted value is never surfaced.
    """
    if not text or TOKEN_PREFIX not in text:
        return text

    index = _index_entries(entries)
    unresolved = 0

    def _replace(match) -> str:
        nonlocal unresolved
        token_type, vault_id = match.group(1), match.group(2)
        entry = index.get(vault_id)
        if entry is None:
            unresolved += 1
            return REDACTED_PLACEHOLDER
        return deidentify_value(entry.value, entry.phi_type or token_type)

    result = VAULT_TOKEN_RE.sub(_replace, text)
    if unresolved:
        logger.warning("Unresolved vault references redacted", extra={"unresolved_count": unresolved})
    return result


def deidentify_record(
    record: Any,
    entries: Iterable[VaultEntry] | Mapping[str, VaultEntry] | None,
) -> Any:
    """De-identify every string leaf of a nested record (dicts, lists, tuples)."""
    index = _index_entries(entries)

    def _walk(node: Any) -> Any:
        if isinstance(node, str):
            return deidentify_string(node, index)
        if isinstance(node, Mapping):
            return {key: _walk(value) for key, value in node.items()}
        if isinstance(node, list):
            return [_walk(item) for item in node]
        if isinstance(node, tuple):
            return tuple(_walk(item) for item in node)
        return node

    return _walk(record)


__all__ = [
    "NAME_PLACEHOLDER",
    "DATE_PLACEHOLDER",
    "REDACTED_PLACEHOLDER",
    "parse_dob",
    "calculate_age",
    "generalize_location",
    "compute_demographics",
    "deidentify_value",
    "deidentify_string",
    "deidentify_record",
]
