"""Generic API response schemas"""

from pydantic import BaseModel
from typing import Optional, Any, Dict


class ErrorResponse(BaseModel):
    """Generic API error response"""
    success: bool = False
    error: str
    code: str
    details: Optional[Dict[str, Any]] = None
    path: Optional[str] = None
    timestamp: str


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    database: str
    cleanup_worker: Dict[str, Any]
    timestamp: str
