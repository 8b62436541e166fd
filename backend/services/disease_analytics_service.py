from __future__ import annotations

import datetime as dt
import logging
import time
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Callable, Iterator

from config import RiskThresholds, SnapshotThresholds, StatusThresholds, settings
from services.dashboard_tiles import build_dashboard_summary, build_risk_rows
from services.district_resolver import DistrictResolver, MatcherCache
from services.errors import UpstreamError
from services.hierarchy import build_district_hierarchy, find_district
from services.leaderboard import (
    average_response,
    build_active_cases,
    build_outbreak_alerts,
    format_cases_delta,
    taluk_coverage,
)
from services.locations import DEFAULT_DISTRICT_SLUG, sanitize_district_slug
from services.record_store import EventRecord, RecordFetcher, RecordStore
from services.risk import build_risk_profile
from services.trends import build_district_cases, build_trend_data, label_trend_keys
from services.windows import (
    build_window,
    parse_range_token,
    previous_offset,
    sanitize_cases_range,
    sanitize_offset_days,
    sanitize_range_days,
    sanitize_trend_days,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def default_resolver() -> DistrictResolver:
    """Process-wide resolver; its matcher cache is shared by every request."""
    return DistrictResolver(
        max_distance=settings.district_max_edit_distance,
        cache=MatcherCache(settings.district_cache_limit),
    )


class DiseaseAnalyticsService:
    """
    One method per dashboard view. Each call builds its trees and maps from scratch;
    the resolver (and its matcher cache) is the only state shared between calls.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        resolver: DistrictResolver | None = None,
        clock: Callable[[], dt.datetime] | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self.fetcher = RecordFetcher(store, timeout_s=timeout_s)
        self.resolver = resolver or default_resolver()
        self.clock = clock or dt.datetime.now
        self.risk_thresholds = RiskThresholds.from_settings()
        self.status_thresholds = StatusThresholds.from_settings()
        self.snapshot_thresholds = SnapshotThresholds.from_settings()

    @contextmanager
    def _view(self, label: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        except UpstreamError as e:
            logger.error("[DiseaseAnalytics] %s failed: %s", label, e.message, exc_info=True)
            raise type(e)(e.message, view=label) from e
        duration_ms = (time.perf_counter() - started) * 1000
        if duration_ms > settings.slow_call_warn_ms:
            logger.warning(
                "[DiseaseAnalytics] %s took %.0fms (>%sms)", label, duration_ms, settings.slow_call_warn_ms
            )

    def district_hierarchy(
        self, *, range_days: Any = None, offset_days: Any = None, district: str | None = None
    ) -> dict:
        """district -> taluk -> village tree with taluk trends vs the back-to-back previous window."""
        with self._view("district_hierarchy"):
            now = self.clock()
            rng = sanitize_range_days(range_days)
            off = sanitize_offset_days(offset_days)
            current, previous = self.fetcher.fetch_pair(
                build_window(rng, off, now=now),
                build_window(rng, previous_offset(rng, off), now=now),
                sanitize_district_slug(district),
            )
            return {"districts": build_district_hierarchy(current, previous)}

    def district_taluks(self, district: str, *, range_days: Any = None, offset_days: Any = None) -> dict:
        """Taluk + village drill-down for one district; an empty node when nothing matched."""
        district_slug = sanitize_district_slug(district)
        if not district_slug:
            raise ValueError("District parameter is required")
        with self._view("district_taluks"):
            now = self.clock()
            rng = sanitize_range_days(range_days, fallback=1)
            off = sanitize_offset_days(offset_days)
            current, previous = self.fetcher.fetch_pair(
                build_window(rng, off, now=now),
                build_window(rng, previous_offset(rng, off), now=now),
                district_slug,
            )
            hierarchy = build_district_hierarchy(current, previous)
            return {"district": find_district(hierarchy, district_slug)}

    def disease_summary(
        self,
        *,
        district: str | None = None,
        range_days: Any = None,
        cases_range_days: Any = None,
        cases_offset_days: Any = None,
    ) -> dict:
        """District comparison bars (cases window) plus disease trend lines (trend window)."""
        with self._view("disease_summary"):
            now = self.clock()
            district_slug = sanitize_district_slug(district) or DEFAULT_DISTRICT_SLUG
            trend_days = sanitize_trend_days(range_days)
            # pull a wider window so trend lines stay smooth at the edges
            trend_fetch_days = min(settings.max_lookback_days, trend_days * 2)
            cases_days = sanitize_cases_range(cases_range_days)
            cases_offset = sanitize_offset_days(cases_offset_days)

            trend_records, cases_records = self.fetcher.fetch_pair(
                build_window(trend_fetch_days, now=now),
                build_window(cases_days, cases_offset, now=now),
            )
            bars = build_district_cases(cases_records)
            trend = build_trend_data(trend_records, district_slug, trend_days, now=now)
            return {
                "districtCases": bars["districtCases"],
                "diseaseKeys": bars["diseaseKeys"],
                "trendData": trend["trendData"],
                "trendKeys": label_trend_keys(trend["trendKeys"]),
            }

    def active_cases(self, *, district: str | None = None, range_days: Any = None, offset_days: Any = None) -> dict:
        with self._view("active_cases"):
            now = self.clock()
            rng = sanitize_range_days(range_days)
            off = sanitize_offset_days(offset_days)
            records = self.fetcher.fetch(build_window(rng, off, now=now))
            return build_active_cases(
                records, sanitize_district_slug(district), now=now, thresholds=self.status_thresholds
            )

    def timeline_stats(self, *, district: str | None = None, range_token: str | None = None) -> dict:
        """Quick KPIs: case delta vs previous window, average response, taluk coverage."""
        with self._view("timeline_stats"):
            now = self.clock()
            rng = parse_range_token(range_token)
            district_slug = sanitize_district_slug(district)
            current, previous = self.fetcher.fetch_pair(
                build_window(rng, now=now),
                build_window(rng, previous_offset(rng), now=now),
                district_slug,
            )
            return {
                "casesDelta": format_cases_delta(len(current), len(previous)),
                "response": average_response(current, now=now),
                "coverage": taluk_coverage(current, self.fetcher.distinct_taluks()),
            }

    def risk_map(self, *, range_days: Any = None, offset_days: Any = None, district: str | None = None) -> dict:
        """Statewide heatmap markers with risk tags and percent change."""
        with self._view("risk_map"):
            now = self.clock()
            rng = sanitize_range_days(range_days)
            off = sanitize_offset_days(offset_days)
            current, previous = self.fetcher.fetch_pair(
                build_window(rng, off, now=now),
                build_window(rng, previous_offset(rng, off), now=now),
                sanitize_district_slug(district),
            )
            return {"districts": build_risk_profile(current, previous, self.resolver, self.risk_thresholds)}

    def outbreak_alerts(self, *, district: str | None = None) -> dict:
        """Recent contagious records for the alerts card, scoped by a case-insensitive district match."""
        with self._view("outbreak_alerts"):
            now = self.clock()
            records = self.fetcher.fetch(build_window(settings.outbreak_lookback_days, now=now))
            return {"alerts": build_outbreak_alerts(self._scoped(records, district), now=now)}

    def dashboard_summary(self, *, district: str | None = None) -> dict:
        """KPI tiles: registered subjects, high-risk camps, active cases and contagious hits."""
        with self._view("dashboard_summary"):
            current, previous = self._dashboard_pair()
            district_slug = sanitize_district_slug(district)
            subjects = {
                sid
                for sid, label in self.fetcher.subject_districts()
                if not district_slug or self.resolver.matches(district_slug, label)
            }
            return build_dashboard_summary(
                self._scoped(current, district), self._scoped(previous, district), len(subjects)
            )

    def risk_snapshot(self, *, district: str | None = None) -> dict:
        """Busiest districts of the dashboard window for the rapid risk widget."""
        with self._view("risk_snapshot"):
            current, previous = self._dashboard_pair()
            rows = build_risk_rows(
                self._scoped(current, district),
                self._scoped(previous, district),
                thresholds=self.snapshot_thresholds,
            )
            return {"districts": rows}

    def _dashboard_pair(self) -> tuple[list[EventRecord], list[EventRecord]]:
        now = self.clock()
        rng = sanitize_range_days(settings.dashboard_lookback_days)
        return self.fetcher.fetch_pair(
            build_window(rng, now=now),
            build_window(rng, previous_offset(rng), now=now),
        )

    def _scoped(self, records: list[EventRecord], district: str | None) -> list[EventRecord]:
        # case-insensitive exact match on the readable district name
        district_slug = sanitize_district_slug(district)
        if not district_slug:
            return records
        return [r for r in records if self.resolver.matches(district_slug, r.district)]
