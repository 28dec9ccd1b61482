from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.breakroom.models import Base


class TestRun(Base):
    __tablename__ = "test_runs"
    __table_args__ = (
        Index("idx_test_runs_platform", "platform"),
        Index("idx_test_runs_created_at", "created_at"),
    )
    __test__ = False  # not a pytest class

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    platform: Mapped[str] = mapped_column(String(32), nullable=False)  # web, android
    environment: Mapped[str] = mapped_column(String(64), nullable=False, default="local")
    branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    commit_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="running")  # running, completed, failed
    total_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    passed_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    suites: Mapped[list["TestSuite"]] = relationship(
        "TestSuite",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="TestSuite.id",
    )


class TestSuite(Base):
    __tablename__ = "test_suites"
    __table_args__ = (
        Index("idx_test_suites_run_id", "test_run_id"),
    )
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    test_run_id: Mapped[int] = mapped_column(ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(512), nullable=False)
    file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="running")  # running, passed, failed
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    passed_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    run: Mapped[TestRun] = relationship("TestRun", back_populates="suites")
    cases: Mapped[list["TestCase"]] = relationship(
        "TestCase",
        back_populates="suite",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TestCase.id",
    )


class TestCase(Base):
    __tablename__ = "test_cases"
    __table_args__ = (
        Index("idx_test_cases_suite_id", "test_suite_id"),
    )
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    test_suite_id: Mapped[int] = mapped_column(ForeignKey("test_suites.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(1024), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")  # passed, failed, skipped, pending
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_stack: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    suite: Mapped[TestSuite] = relationship("TestSuite", back_populates="cases")
