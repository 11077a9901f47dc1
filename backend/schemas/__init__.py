from schemas.report import (
    REQUIRED_FIELDS,
    ReportConfig,
    ChapterPlan,
    SectionContent,
    ChapterContent,
    parse_report_config,
)
from schemas.job import JobPhase, PhaseDetail, Artifact, Job, JobStatusRead, SubmitResponse

__all__ = [
    "REQUIRED_FIELDS", "ReportConfig", "ChapterPlan", "SectionContent", "ChapterContent",
    "parse_report_config",
    "JobPhase", "PhaseDetail", "Artifact", "Job", "JobStatusRead", "SubmitResponse",
]
