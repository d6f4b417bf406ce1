"""SQLAlchemy ORM models -- infrastructure persistence layer.

``audit_logs`` rows are written once; no code path issues UPDATE or DELETE
against that table.  Database grants should restrict it to INSERT/SELECT.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eco_compliance.infrastructure.persistence.database import Base


# ---------------------------------------------------------------------------
# ApplicationModel
# ---------------------------------------------------------------------------

class ApplicationModel(Base):
    """``applications`` table -- maps to the ``Application`` aggregate."""

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    policy_segment: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    owner: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    environments: Mapped[list["EnvironmentConfigModel"]] = relationship(
        "EnvironmentConfigModel",
        back_populates="application",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="EnvironmentConfigModel.created_at",
    )

    # The aggregate bumps ``version`` itself; the mapper only checks it.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def __repr__(self) -> str:
        return f"<ApplicationModel id={self.id} name={self.name} active={self.is_active}>"


class EnvironmentConfigModel(Base):
    """``environment_configs`` table -- owned by ``applications``."""

    __tablename__ = "environment_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    application_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    risk_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    security_tools: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    policies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    env_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    application: Mapped[ApplicationModel] = relationship("ApplicationModel", back_populates="environments")

    __table_args__ = (
        UniqueConstraint("application_id", "name", name="uq_environment_configs_application_name"),
    )

    def __repr__(self) -> str:
        return f"<EnvironmentConfigModel application_id={self.application_id} name={self.name}>"


# ---------------------------------------------------------------------------
# ComplianceEvaluationModel
# ---------------------------------------------------------------------------

class ComplianceEvaluationModel(Base):
    """``compliance_evaluations`` table -- one row per evaluation request."""

    __tablename__ = "compliance_evaluations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    application_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    application_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    environment: Mapped[str] = mapped_column(String(50), nullable=False)
    risk_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, index=True)
    decision: Mapped[dict] = mapped_column(JSON, nullable=False)
    scan_results: Mapped[list] = mapped_column(JSON, nullable=False)
    critical_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    evaluated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_compliance_evaluations_app_env", "application_id", "environment"),
    )

    def __repr__(self) -> str:
        return f"<ComplianceEvaluationModel id={self.id} allowed={self.allowed}>"


# ---------------------------------------------------------------------------
# AuditLogModel
# ---------------------------------------------------------------------------

class AuditLogModel(Base):
    """``audit_logs`` table -- insert/select only."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    evaluation_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    application_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    application_name: Mapped[str] = mapped_column(String(100), nullable=False)
    environment: Mapped[str] = mapped_column(String(50), nullable=False)
    risk_tier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    violations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    scan_results_json: Mapped[str] = mapped_column(Text, nullable=False)
    policy_input_json: Mapped[str] = mapped_column(Text, nullable=False)
    policy_output_json: Mapped[str] = mapped_column(Text, nullable=False)
    evidence_captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    evidence_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    evaluation_duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    critical_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_vulnerability_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    evaluated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_app_env", "application_id", "environment"),
        Index("ix_audit_logs_allowed_evaluated", "allowed", "evaluated_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLogModel id={self.id} evaluation_id={self.evaluation_id} allowed={self.allowed}>"
