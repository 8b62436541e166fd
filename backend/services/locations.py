from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from services.record_store import EventRecord

logger = logging.getLogger(__name__)


# Human friendly placeholders so payloads never carry blanks.
FALLBACK_STRINGS = {
    "district": "Unassigned District",
    "taluk": "Unassigned Taluk",
    "village": "Unassigned Village",
    "camp": "Unmapped Camp",
    "disease": "Unspecified",
}

PLACEHOLDER_DISEASE_LABELS = frozenset(
    {
        "notconfirmed",
        "not-confirmed",
        "not confirmed",
        "pending",
        "awaiting",
        "tbd",
        "na",
        "n/a",
        "none",
        "unknown",
        "--",
        "-",
    }
)

_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACES = re.compile(r"\s+")
_SLUG_HYPHENS = re.compile(r"-+")
_WORD = re.compile(r"\w\S*")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


@dataclass(frozen=True)
class DiseaseMeta:
    key: str
    label: str


def normalize_text(value: Any, fallback: str) -> str:
    if not value or not isinstance(value, str):
        return fallback
    trimmed = value.strip()
    return trimmed if trimmed else fallback


def make_slug(value: Any = "") -> str:
    s = str(value if value is not None else "").strip().lower()
    s = _SLUG_STRIP.sub("", s)
    s = _SLUG_SPACES.sub("-", s)
    return _SLUG_HYPHENS.sub("-", s)


def to_title_case(value: Any = "") -> str:
    return _WORD.sub(lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), str(value or ""))


def slug_to_name(slug: str | None) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in str(slug or "").split("-") if w)


def sanitize_district_slug(value: Any) -> str | None:
    if not value:
        return None
    return make_slug(value) or None


DEFAULT_DISTRICT_SLUG = make_slug(FALLBACK_STRINGS["district"])


# ----- Location lookups -----


def district_label(record: "EventRecord") -> str:
    if not (record.district or "").strip():
        logger.debug("record %s has no district; using fallback", record.record_id)
    return normalize_text(record.district, FALLBACK_STRINGS["district"])


def district_slug_of(record: "EventRecord") -> str:
    return make_slug(district_label(record))


def location_names(record: "EventRecord") -> tuple[str, str, str]:
    """(district, taluk, village) display names with fallbacks."""
    return (
        to_title_case(district_label(record)),
        to_title_case(normalize_text(record.taluk, FALLBACK_STRINGS["taluk"])),
        to_title_case(normalize_text(record.village, FALLBACK_STRINGS["village"])),
    )


def camp_name(record: "EventRecord", fallback_label: str | None = None) -> str:
    fallback = f"{fallback_label} Cluster" if fallback_label else FALLBACK_STRINGS["camp"]
    return normalize_text(record.camp, fallback)


# ----- Disease labels -----


def disease_key_from_name(value: str | None = None) -> str:
    """Convert a disease label into a predictable camelCase key for charts."""
    words = [w for w in _NON_ALNUM.sub(" ", str(value or FALLBACK_STRINGS["disease"]).lower()).strip().split(" ") if w]
    if not words:
        return "unspecified"
    return words[0] + "".join(w[:1].upper() + w[1:] for w in words[1:])


def humanize_disease_key(key: str | None = "") -> str:
    spaced = _CAMEL_BOUNDARY.sub(r" \1", str(key or "")).replace("-", " ")
    return to_title_case(spaced).strip()


def _sanitize_disease(value: Any) -> str | None:
    if not value:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    normalized = trimmed.lower()
    if normalized in PLACEHOLDER_DISEASE_LABELS:
        return None
    if re.sub(r"\s+", "", normalized) in PLACEHOLDER_DISEASE_LABELS:
        return None
    return trimmed


def resolved_disease_label(record: "EventRecord") -> str:
    """Confirmed disease wins unless blank/placeholder, then suspected, then 'Unspecified'."""
    source = _sanitize_disease(record.confirmed_disease) or _sanitize_disease(record.suspected_disease)
    if source is None:
        logger.debug("record %s has no usable disease label", record.record_id)
        return FALLBACK_STRINGS["disease"]
    return source


def disease_meta(record: "EventRecord") -> DiseaseMeta:
    source = resolved_disease_label(record)
    return DiseaseMeta(key=disease_key_from_name(source), label=to_title_case(source))


def dedup_disease_label(record: "EventRecord") -> str:
    return resolved_disease_label(record).lower()
