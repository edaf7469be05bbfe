"""
Response Models
Pydantic models for action results and API responses
"""

from typing import Any, Optional
from pydantic import BaseModel

from .reports import Report


class Attachment(BaseModel):
    """File sent back alongside a report message"""
    filename: str
    content: bytes
    caption: str = ""
    media_type: str = "application/octet-stream"


class ReportResult(BaseModel):
    """Outcome of one dispatcher action"""
    success: bool
    message: str = ""
    data: Optional[Report] = None
    attachment: Optional[Attachment] = None

    @classmethod
    def ok(cls, message: str, data: Any = None, attachment: Optional[Attachment] = None) -> "ReportResult":
        return cls(success=True, message=message, data=data, attachment=attachment)

    @classmethod
    def fail(cls, message: str) -> "ReportResult":
        return cls(success=False, message=message)


class ExportFile(BaseModel):
    filename: str
    content: bytes
    media_type: str = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
