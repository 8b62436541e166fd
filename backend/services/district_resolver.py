from __future__ import annotations

import re
import threading
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from services.locations import FALLBACK_STRINGS, make_slug, normalize_text, slug_to_name, to_title_case


DEFAULT_COORDINATES: tuple[float, float] = (76.5, 10.2)


@dataclass(frozen=True)
class CanonicalDistrict:
    name: str
    slug: str
    coordinates: tuple[float, float] = DEFAULT_COORDINATES


def _district(name: str, lon: float, lat: float) -> CanonicalDistrict:
    return CanonicalDistrict(name=name, slug=make_slug(name), coordinates=(lon, lat))


# Base coordinates (lon, lat) so the heatmap has a reference point even when a
# district has no records in the current window.
CANONICAL_DISTRICTS: tuple[CanonicalDistrict, ...] = (
    _district("Thiruvananthapuram", 76.9415, 8.5241),
    _district("Kollam", 76.6141, 8.8932),
    _district("Pathanamthitta", 76.7825, 9.2648),
    _district("Alappuzha", 76.3388, 9.4981),
    _district("Kottayam", 76.5222, 9.5916),
    _district("Idukki", 76.9725, 9.9186),
    _district("Ernakulam", 76.2673, 9.9312),
    _district("Thrissur", 76.2141, 10.5276),
    _district("Palakkad", 76.651, 10.7867),
    _district("Malappuram", 75.984, 11.0519),
    _district("Kozhikode", 75.7804, 11.2588),
    _district("Wayanad", 76.132, 11.6854),
    _district("Kannur", 75.3704, 11.8745),
    _district("Kasaragod", 75.0017, 12.4996),
)


def levenshtein(a: str = "", b: str = "") -> int:
    return Levenshtein.distance(a or "", b or "")


class MatcherCache:
    """
    Process-wide slug -> compiled matcher cache.
    Values are immutable once inserted; when the cap is reached the whole map is cleared.
    """

    def __init__(self, capacity: int = 150) -> None:
        self.capacity = max(1, int(capacity))
        self._lock = threading.Lock()
        self._items: dict[str, re.Pattern[str]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, slug: object) -> bool:
        with self._lock:
            return slug in self._items

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def get_or_compile(self, slug: str) -> re.Pattern[str] | None:
        if not slug:
            return None
        with self._lock:
            hit = self._items.get(slug)
            if hit is not None:
                return hit
        readable = slug_to_name(slug)
        if not readable:
            return None
        pattern = re.compile(rf"^{re.escape(readable)}$", re.IGNORECASE)
        with self._lock:
            if slug not in self._items and len(self._items) >= self.capacity:
                self._items.clear()
            return self._items.setdefault(slug, pattern)


class DistrictResolver:
    def __init__(
        self,
        districts: tuple[CanonicalDistrict, ...] = CANONICAL_DISTRICTS,
        *,
        max_distance: int = 2,
        cache: MatcherCache | None = None,
    ) -> None:
        self.districts = tuple(districts)
        self.max_distance = int(max_distance)
        self.cache = cache if cache is not None else MatcherCache()
        self._by_slug = {d.slug: d for d in self.districts}

    def canonical(self, slug: str) -> CanonicalDistrict | None:
        return self._by_slug.get(slug)

    def resolve(self, label: str | None) -> CanonicalDistrict:
        normalized = normalize_text(label, FALLBACK_STRINGS["district"])
        slug = make_slug(normalized)
        exact = self._by_slug.get(slug)
        if exact is not None:
            return exact

        best: CanonicalDistrict | None = None
        best_score: int | None = None
        for d in self.districts:
            score = levenshtein(slug, d.slug)
            # strict '<' keeps the first minimal match on ties
            if best_score is None or score < best_score:
                best, best_score = d, score

        if best is not None and best_score is not None and best_score <= self.max_distance:
            return best

        return CanonicalDistrict(name=to_title_case(normalized), slug=slug, coordinates=DEFAULT_COORDINATES)

    def matcher(self, slug: str | None) -> re.Pattern[str] | None:
        return self.cache.get_or_compile(make_slug(slug or ""))

    def matches(self, slug: str | None, label: str | None) -> bool:
        """True when a free-text district label reads as the given slug (case-insensitive)."""
        pattern = self.matcher(slug)
        if pattern is None:
            return True
        return bool(pattern.match(normalize_text(label, FALLBACK_STRINGS["district"])))
