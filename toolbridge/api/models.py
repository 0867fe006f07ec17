"""API request/response models."""

from typing import Any, Dict, List
from pydantic import BaseModel, Field


# ============================================================================
# Health Models
# ============================================================================

class HealthResponse(BaseModel):
    """Response model for the health check."""
    status: str = Field(..., example="ok")
    service: str = Field(..., example="toolbridge")
    version: str = Field(..., example="1.0.0")


# ============================================================================
# Tool Models
# ============================================================================

class ToolResponse(BaseModel):
    """One synthesized agent tool."""
    name: str = Field(..., example="autotask_ticket_getMany")
    description: str
    input_schema: Dict[str, Any] = Field(..., description="Object-typed JSON Schema of the tool input")
    operation: str = Field(..., example="getMany")


class ToolListResponse(BaseModel):
    """Response model for listing the tools of a resource."""
    resource: str
    tools: List[ToolResponse]
    count: int
