"""JSON facade: request models and the ReportService handlers."""

from .models import FetchRequest, PollRequest
from .service import ReportService

__all__ = ["FetchRequest", "PollRequest", "ReportService"]
