from models.job import ReportJobRecord

__all__ = ["ReportJobRecord"]
