"""
Query Planning Models
Date windows, persisted voucher volume profile and chunking strategy
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class QueryWindow(BaseModel):
    """Inclusive YYYYMMDD window; None bounds mean unconstrained"""
    from_date: Optional[str] = None
    to_date: Optional[str] = None


class VolumeProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    avg_per_day: float = Field(alias="avgPerDay")
    last_probed: datetime = Field(alias="lastProbed")
    company_name: Optional[str] = Field(default=None, alias="companyName")


class QueryStrategy(BaseModel):
    chunk_days: int
    avg_per_day: float
    needs_chunking: bool


class ActionRequest(BaseModel):
    """Body of an action call; port and company_name override config.yaml"""
    model_config = ConfigDict(populate_by_name=True)

    params: Dict[str, Any] = {}
    port: Optional[int] = None
    company_name: Optional[str] = Field(default=None, alias="companyName")
