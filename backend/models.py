from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Patient(Base):
    """
    Registered subject. Location fields are free text as captured at the camp desk,
    so they are normalized at aggregation time, never on write.
    """

    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)

    district: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    taluk: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    village: Mapped[str | None] = mapped_column(String(128), nullable=True)
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)  # camp label

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=lambda: dt.datetime.utcnow(), nullable=False)

    prescriptions: Mapped[list["Prescription"]] = relationship(back_populates="patient")


class Doctor(Base):
    __tablename__ = "doctors"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)


class Prescription(Base):
    """One disease-related encounter (the event record the dashboards aggregate)."""

    __tablename__ = "prescriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(String(64), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("doctors.id"), nullable=True)

    date_of_issue: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    follow_up_date: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)

    contagious: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confirmed_disease: Mapped[str | None] = mapped_column(String(128), nullable=True)
    suspected_disease: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient: Mapped[Patient] = relationship(back_populates="prescriptions")
    doctor: Mapped[Doctor | None] = relationship()
