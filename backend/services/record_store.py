from __future__ import annotations

import datetime as dt
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from config import settings
from models import Patient, Prescription
from services.errors import UpstreamError, UpstreamFailure, UpstreamTimeout
from services.locations import dedup_disease_label, district_slug_of
from services.windows import Window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventRecord:
    """One disease-related encounter with the subject's location fields denormalized onto it."""

    record_id: str
    subject_id: str | None
    subject_name: str | None = None
    district: str | None = None
    taluk: str | None = None
    village: str | None = None
    camp: str | None = None
    date_of_issue: dt.datetime | None = None
    contagious: bool = False
    confirmed_disease: str | None = None
    suspected_disease: str | None = None
    follow_up_date: dt.datetime | None = None
    notes: str | None = None
    doctor_name: str | None = None


class RecordStore(Protocol):
    def fetch(self, window: Window | None, *, timeout_s: float) -> list[EventRecord]:
        """Records issued inside `window` (all records when None), most recent first."""

    def distinct_taluks(self) -> list[str]:
        ...

    def subject_districts(self) -> list[tuple[str, str | None]]:
        """(subject id, district label) for every registered subject."""


def _recency_key(record: EventRecord) -> tuple[int, float]:
    # undated records sort after every dated one
    if record.date_of_issue is None:
        return (1, 0.0)
    return (0, -record.date_of_issue.timestamp())


def sort_most_recent_first(records: Iterable[EventRecord]) -> list[EventRecord]:
    return sorted(records, key=_recency_key)


def dedupe_same_disease_cases(records: Iterable[EventRecord]) -> list[EventRecord]:
    """Keep the first record per (subject, lowercased resolved disease label)."""
    seen: dict[tuple[str, str], EventRecord] = {}
    for rec in records:
        key = (str(rec.subject_id), dedup_disease_label(rec))
        if key not in seen:
            seen[key] = rec
    return list(seen.values())


class InMemoryRecordStore:
    """Record store over an in-process list (demo mode + tests)."""

    def __init__(self, records: Iterable[EventRecord] = ()) -> None:
        self._records = list(records)

    def fetch(self, window: Window | None, *, timeout_s: float) -> list[EventRecord]:
        rows = self._records if window is None else [r for r in self._records if window.contains(r.date_of_issue)]
        return sort_most_recent_first(rows)

    def distinct_taluks(self) -> list[str]:
        return sorted({r.taluk for r in self._records if r.taluk})

    def subject_districts(self) -> list[tuple[str, str | None]]:
        latest: dict[str, str | None] = {}
        for r in sort_most_recent_first(self._records):
            if r.subject_id:
                latest.setdefault(r.subject_id, r.district)
        return list(latest.items())


class SqlRecordStore:
    """
    Prescriptions joined with their patient (location fields) and doctor.
    Every query carries a deadline: SQLite via a progress handler, PostgreSQL via statement_timeout.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def fetch(self, window: Window | None, *, timeout_s: float) -> list[EventRecord]:
        q = (
            select(Prescription)
            .options(selectinload(Prescription.patient), selectinload(Prescription.doctor))
            .order_by(Prescription.date_of_issue.desc(), Prescription.id.desc())
        )
        if window is not None:
            q = q.where(
                Prescription.date_of_issue.is_not(None),
                Prescription.date_of_issue >= window.start,
                Prescription.date_of_issue <= window.end,
            )
        db = self._session_factory()
        release = None
        try:
            release = self._apply_deadline(db, timeout_s)
            rows = db.execute(q).scalars().all()
            return [self._to_record(p) for p in rows]
        except OperationalError as e:
            msg = str(e).lower()
            if "interrupted" in msg or "timeout" in msg or "canceling statement" in msg:
                raise UpstreamTimeout("Record store query timed out") from e
            raise UpstreamFailure("Record store unavailable") from e
        except SQLAlchemyError as e:
            raise UpstreamFailure("Record store unavailable") from e
        finally:
            if release is not None:
                release()
            db.close()

    def distinct_taluks(self) -> list[str]:
        db = self._session_factory()
        try:
            rows = db.execute(select(Patient.taluk).distinct()).scalars().all()
            return sorted(t for t in rows if t)
        except SQLAlchemyError as e:
            raise UpstreamFailure("Record store unavailable") from e
        finally:
            db.close()

    def subject_districts(self) -> list[tuple[str, str | None]]:
        db = self._session_factory()
        try:
            rows = db.execute(select(Patient.id, Patient.district)).all()
            return [(str(pid), district) for pid, district in rows]
        except SQLAlchemyError as e:
            raise UpstreamFailure("Record store unavailable") from e
        finally:
            db.close()

    def _apply_deadline(self, db: Session, timeout_s: float) -> Callable[[], None] | None:
        conn = db.connection()
        dialect = conn.dialect.name
        if dialect == "postgresql":
            # transaction-scoped; gone when the session closes
            conn.exec_driver_sql(f"SET LOCAL statement_timeout = {int(timeout_s * 1000)}")
            return None
        if dialect == "sqlite":
            deadline = time.monotonic() + timeout_s
            raw = conn.connection.driver_connection
            # non-zero return aborts the running statement ("interrupted")
            raw.set_progress_handler(lambda: 1 if time.monotonic() > deadline else 0, 10_000)
            return lambda: raw.set_progress_handler(None, 0)
        return None

    @staticmethod
    def _to_record(p: Prescription) -> EventRecord:
        patient = p.patient
        return EventRecord(
            record_id=str(p.id),
            subject_id=str(p.patient_id) if p.patient_id is not None else None,
            subject_name=patient.name if patient else None,
            district=patient.district if patient else None,
            taluk=patient.taluk if patient else None,
            village=patient.village if patient else None,
            camp=patient.address if patient else None,
            date_of_issue=p.date_of_issue,
            contagious=bool(p.contagious),
            confirmed_disease=p.confirmed_disease,
            suspected_disease=p.suspected_disease,
            follow_up_date=p.follow_up_date,
            notes=p.notes,
            doctor_name=p.doctor.name if p.doctor else None,
        )


class RecordFetcher:
    """
    Single choke point every builder goes through, so counts agree across widgets:
    fetch -> recency re-sort -> district post-filter -> (subject, disease) dedup.
    """

    def __init__(self, store: RecordStore, *, timeout_s: float | None = None) -> None:
        self.store = store
        self.timeout_s = float(settings.query_timeout_s if timeout_s is None else timeout_s)

    def fetch(self, window: Window | None = None, district_slug: str | None = None) -> list[EventRecord]:
        records = self._fetch_raw(window)
        return self.prepare(records, district_slug)

    def prepare(self, records: Iterable[EventRecord], district_slug: str | None = None) -> list[EventRecord]:
        ordered = sort_most_recent_first(records)
        if district_slug:
            ordered = [r for r in ordered if district_slug_of(r) == district_slug]
        return dedupe_same_disease_cases(ordered)

    def fetch_pair(
        self,
        current: Window | None,
        previous: Window | None,
        district_slug: str | None = None,
    ) -> tuple[list[EventRecord], list[EventRecord]]:
        """Fetch two windows concurrently; both must succeed or the whole request fails."""
        pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="record-fetch")
        futures = [pool.submit(self._fetch_raw, current), pool.submit(self._fetch_raw, previous)]
        try:
            deadline = time.monotonic() + self.timeout_s
            results = [f.result(timeout=max(0.0, deadline - time.monotonic())) for f in futures]
        except FutureTimeout as e:
            raise UpstreamTimeout("Record store query timed out") from e
        finally:
            for f in futures:
                f.cancel()
            pool.shutdown(wait=False, cancel_futures=True)
        return self.prepare(results[0], district_slug), self.prepare(results[1], district_slug)

    def distinct_taluks(self) -> list[str]:
        try:
            return self.store.distinct_taluks()
        except UpstreamError:
            raise
        except Exception as e:
            logger.error("taluk lookup failed: %s: %s", type(e).__name__, e, exc_info=True)
            raise UpstreamFailure("Record store unavailable") from e

    def subject_districts(self) -> list[tuple[str, str | None]]:
        try:
            return list(self.store.subject_districts())
        except UpstreamError:
            raise
        except Exception as e:
            logger.error("subject lookup failed: %s: %s", type(e).__name__, e, exc_info=True)
            raise UpstreamFailure("Record store unavailable") from e

    def _fetch_raw(self, window: Window | None) -> list[EventRecord]:
        try:
            return list(self.store.fetch(window, timeout_s=self.timeout_s))
        except UpstreamError:
            raise
        except TimeoutError as e:
            raise UpstreamTimeout("Record store query timed out") from e
        except Exception as e:
            logger.error("record fetch failed: %s: %s", type(e).__name__, e, exc_info=True)
            raise UpstreamFailure("Record store unavailable") from e
