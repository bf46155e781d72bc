from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, Float, String, JSON, DateTime, func

from .authz import Base


class CityTarget(Base):
    """Append-only. The newest row for a (city, month) is the authoritative target."""
    __tablename__ = 'city_targets'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    city: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)  # YYYY-MM
    labour: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    parts: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_vehicles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_service: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    free_service: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rr: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AdvisorTarget(Base):
    """Per-advisor share of a city target. A new distribution pass for the
    same (city, month) replaces the previous rows."""
    __tablename__ = 'advisor_targets'
    MODE_AUTOMATIC = 'automatic'
    MODE_MANUAL = 'manual'
    ALL_MODES = (MODE_AUTOMATIC, MODE_MANUAL)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    city: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    advisor_name: Mapped[str] = mapped_column(String(128), nullable=False)
    advisor_key: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default=MODE_AUTOMATIC)
    labour: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    parts: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_vehicles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_service: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    free_service: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rr: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # achievement at the moment the pass was saved
    achieved_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())


class RoBillingRow(Base):
    """Already-parsed RO billing record. Advisor key and work-type category are
    computed once when the row is ingested."""
    __tablename__ = 'ro_billing_rows'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    city: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    advisor_name: Mapped[str] = mapped_column(String(128), nullable=False)
    advisor_key: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    labour_amt: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    part_amt: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    work_type: Mapped[str] = mapped_column(String(64), nullable=False, default='')
    work_category: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bill_date: Mapped[Optional[str]] = mapped_column(String(10))  # YYYY-MM-DD
    uploaded_by: Mapped[str] = mapped_column(String(128), nullable=False)
    uploaded_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
