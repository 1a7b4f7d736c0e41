"""Type definitions for API request/response validation"""

from pydantic import BaseModel, Field
from typing import Dict, Any, Optional, List
from datetime import datetime

class ProductionRequest(BaseModel):
    """Request type for starting a production"""
    query: str = Field(min_length=1)
    mode: Optional[str] = None  # "monolithic" | "supervisor"; ORCHESTRATION_MODE when omitted

class ProductionResponse(BaseModel):
    """Response type for a started production"""
    run_id: str
    status: str
    mode: str

class ProductionStatus(BaseModel):
    """Status of a production run and its session"""
    run_id: str
    status: str  # running | completed | limit_reached | failed
    mode: str
    session_id: Optional[str] = None
    final_message: Optional[str] = None
    report: Optional[Dict[str, Any]] = None
    asset_summary: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    event_count: int = 0
    created_at: datetime = Field(default_factory=datetime.now)

class DeleteResponse(BaseModel):
    """Response type for deleting a production"""
    status: str
    run_id: str
    deleted_from: List[str] = Field(default_factory=list)

