"""
JSON View
Formats action results as JSON
"""

import base64
from datetime import datetime
from typing import Any, Dict, Optional

from ..models.response import ReportResult


class JsonView:
    """JSON response formatter"""

    @staticmethod
    def success(message: str = "", data: Any = None) -> Dict:
        """Format success response"""
        return {
            "status": "success",
            "message": message,
            "data": data,
            "timestamp": datetime.now().isoformat()
        }

    @staticmethod
    def error(code: str, message: str, details: Optional[str] = None) -> Dict:
        """Format error response"""
        return {
            "error": True,
            "code": code,
            "message": message,
            "details": details,
            "timestamp": datetime.now().isoformat()
        }

    @staticmethod
    def action_result(action: str, result: ReportResult) -> Dict:
        """Format a dispatcher result; attachment bytes are base64 encoded"""
        attachment = None
        if result.attachment is not None:
            attachment = {
                "filename": result.attachment.filename,
                "caption": result.attachment.caption,
                "media_type": result.attachment.media_type,
                "content_base64": base64.b64encode(result.attachment.content).decode("ascii"),
            }
        return {
            "action": action,
            "success": result.success,
            "message": result.message,
            "data": result.data.model_dump(mode="json") if result.data is not None else None,
            "attachment": attachment,
            "timestamp": datetime.now().isoformat()
        }
