"""
Health Models
Pydantic models for health checks
"""

from typing import Dict, Optional, Union
from pydantic import BaseModel


class ComponentHealth(BaseModel):
    status: str
    message: str = ""


class TallyHealth(ComponentHealth):
    server: str
    port: int
    company: Optional[str] = None


class ProcessHealth(ComponentHealth):
    running: bool = False
    pid: Optional[int] = None


class HealthCheckResponse(BaseModel):
    status: str
    timestamp: str
    components: Dict[str, Union[TallyHealth, ProcessHealth]]
