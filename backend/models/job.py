from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, JSON, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class ReportJobRecord(Base):
    __tablename__ = "report_jobs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    phase: Mapped[str] = mapped_column(String, default="analyzing", index=True)
    percentage: Mapped[int] = mapped_column(Integer, default=0)
    # Every Job field except the artifact bytes, as produced by Job.model_dump(mode="json").
    state: Mapped[dict] = mapped_column(JSON, nullable=False)
    artifact_content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
