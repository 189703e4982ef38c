"""
Data Models Module

Pydantic models for the bodies the proxy generates itself. Upstream bodies
are relayed as raw bytes and never go through these models.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ErrorEnvelope(BaseModel):
    """Error body shared with the upstream contract: {"result": "error", "error": "..."}."""
    result: Literal["error"] = Field(default="error", description="Always 'error'")
    error: str = Field(..., description="Human readable error message")


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str = Field(default="ok", description="Service health status")
    service: str = Field(default="edge-proxy", description="Service name")
    version: str = Field(..., description="Service version")
