from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Doctor, Patient, Prescription

logger = logging.getLogger(__name__)


# canonical column -> accepted header aliases (normalized: lowercase, spaces -> "_")
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "patient_id": ("patient_id", "subject_id", "patientid", "patient"),
    "name": ("name", "patient_name", "subject_name"),
    "district": ("district",),
    "taluk": ("taluk", "block", "sub_district"),
    "village": ("village", "ward"),
    "address": ("address", "camp", "camp_name"),
    "doctor_id": ("doctor_id", "doctorid"),
    "doctor_name": ("doctor_name", "doctor"),
    "date_of_issue": ("date_of_issue", "issued_at", "date"),
    "follow_up_date": ("follow_up_date", "followup_date", "follow_up"),
    "contagious": ("contagious", "is_contagious"),
    "confirmed_disease": ("confirmed_disease", "confirmed"),
    "suspected_disease": ("suspected_disease", "suspected"),
    "notes": ("notes", "remarks"),
}

_TRUTHY = {"1", "true", "yes", "y", "t"}


def _norm_col(name: Any) -> str:
    return str(name).strip().lower().replace(" ", "_").replace("-", "_")


def _map_columns(df: pd.DataFrame) -> dict[str, str]:
    norm_map = {_norm_col(c): c for c in df.columns}
    out: dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in norm_map:
                out[canonical] = norm_map[alias]
                break
    if "patient_id" not in out:
        raise ValueError(
            "Records file schema mismatch: a patient_id column is required.\n"
            f"Found columns: {list(map(str, df.columns))}"
        )
    return out


def _text(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _timestamp(value: Any) -> dt.datetime | None:
    s = _text(value)
    if not s:
        return None
    ts = pd.to_datetime(s, errors="coerce", dayfirst=False)
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.to_pydatetime()


def _flag(value: Any) -> bool:
    return (_text(value) or "").lower() in _TRUTHY


@dataclass(frozen=True)
class SeedResult:
    source_path: str
    patients: int
    doctors: int
    prescriptions: int
    skipped_rows: int


class IngestService:
    """Loads a flat records CSV (one row per encounter) into patients/doctors/prescriptions."""

    def load_dataframe(self, path: str) -> pd.DataFrame:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(path)
        if p.suffix.lower() == ".xlsx":
            df = pd.read_excel(p, dtype=str)
        else:
            df = pd.read_csv(p, dtype=str, keep_default_na=False)
        return df.fillna("")

    def has_any_data(self, db: Session) -> bool:
        return db.scalar(select(Prescription.id).limit(1)) is not None

    def ingest_file(self, db: Session, path: str) -> SeedResult:
        df = self.load_dataframe(path)
        cols = _map_columns(df)

        def cell(row: pd.Series, key: str) -> Any:
            col = cols.get(key)
            return row[col] if col is not None else None

        patients: dict[str, Patient] = {}
        doctors: dict[str, Doctor] = {}
        inserted = 0
        skipped = 0

        for _, row in df.iterrows():
            patient_id = _text(cell(row, "patient_id"))
            if not patient_id:
                skipped += 1
                continue

            patient = patients.get(patient_id) or db.get(Patient, patient_id)
            if patient is None:
                patient = Patient(id=patient_id)
                db.add(patient)
            # later rows win for location fields
            for field in ("name", "district", "taluk", "village", "address"):
                value = _text(cell(row, field))
                if value is not None:
                    setattr(patient, field, value)
            patients[patient_id] = patient

            doctor = None
            doctor_name = _text(cell(row, "doctor_name"))
            doctor_id = _text(cell(row, "doctor_id")) or doctor_name
            if doctor_id:
                doctor = doctors.get(doctor_id) or db.get(Doctor, doctor_id)
                if doctor is None:
                    doctor = Doctor(id=doctor_id, name=doctor_name)
                    db.add(doctor)
                doctors[doctor_id] = doctor

            db.add(
                Prescription(
                    patient=patient,
                    doctor=doctor,
                    date_of_issue=_timestamp(cell(row, "date_of_issue")),
                    follow_up_date=_timestamp(cell(row, "follow_up_date")),
                    contagious=_flag(cell(row, "contagious")),
                    confirmed_disease=_text(cell(row, "confirmed_disease")),
                    suspected_disease=_text(cell(row, "suspected_disease")),
                    notes=_text(cell(row, "notes")),
                )
            )
            inserted += 1

        db.flush()
        logger.info(
            "[SEED] %s: patients=%d doctors=%d prescriptions=%d skipped=%d",
            path,
            len(patients),
            len(doctors),
            inserted,
            skipped,
        )
        return SeedResult(
            source_path=path,
            patients=len(patients),
            doctors=len(doctors),
            prescriptions=inserted,
            skipped_rows=skipped,
        )
