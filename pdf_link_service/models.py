"""
Pydantic models for the PDF link service API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ConvertRequest(BaseModel):
    """HTML to PDF conversion request."""

    # Optional so a missing field is reported as 400 by the handler, not 422
    html: Optional[str] = Field(None, description="HTML document to render")


class ConvertResponse(BaseModel):
    """Location of the rendered PDF."""

    pdfUrl: str = Field(..., description="Public URL of the generated PDF")


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "OK"
    message: str = "Server is running"
    timestamp: datetime
    renderer: str
    active_renders: int
    max_concurrent: int
    stored_artifacts: int
    renderer_ready: Optional[bool] = None
    renderer_error: Optional[str] = None
