"""
Pydantic models for the Metadata Assistant REST API.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class LoadRequest(BaseModel):
    """Request model for loading a dandiset."""
    dandiset_id: str = Field(..., min_length=1, description="Dandiset identifier, e.g. 000003")
    version: str = Field("draft", description="Version to load")
    api_key: Optional[str] = Field(None, description="Archive API key for embargoed dandisets")


class LoadResponse(BaseModel):
    """Response model for the load operation."""
    dandiset_id: str = Field(..., description="Loaded dandiset identifier")
    version: str = Field(..., description="Loaded version")
    name: str = Field(..., description="Dandiset name")
    status: Optional[str] = Field(None, description="Version status reported by the archive")
    metadata: Dict[str, Any] = Field(..., description="Base metadata document")


class MetadataResponse(BaseModel):
    """Response model for the current metadata."""
    dandiset_id: Optional[str] = Field(None, description="Loaded dandiset identifier")
    version: Optional[str] = Field(None, description="Loaded version")
    original: Optional[Dict[str, Any]] = Field(None, description="Base metadata document")
    effective: Optional[Dict[str, Any]] = Field(None, description="Metadata with pending changes applied")
    pending_changes: int = Field(..., description="Number of pending changes")


class ChangesResponse(BaseModel):
    """Response model for the pending change list."""
    count: int = Field(..., description="Number of pending changes")
    changes: List[Dict[str, Any]] = Field(..., description="Pending changes in display order")
    summary: List[str] = Field(..., description="One line per change, 'path: old → new'")


class ProposeRequest(BaseModel):
    """Request model for a manual edit, validated like an assistant proposal."""
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., description="Dot-separated path of the field")
    new_value: Any = Field(None, alias="newValue", description="New JSON value")
    delete: bool = Field(False, description="Remove the field instead")
    reason: Optional[str] = Field(None, description="Optional justification")


class ChatRequest(BaseModel):
    """Request model for a chat message."""
    message: str = Field(..., min_length=1, description="User message")


class CommitRequest(BaseModel):
    """Request model for committing pending changes."""
    api_key: Optional[str] = Field(None, description="Archive API key (defaults to the configured key)")


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = Field(..., description="Server health status")
    version: str = Field(..., description="Server version")
    uptime: float = Field(..., description="Server uptime in seconds")
    loaded: bool = Field(..., description="Whether a dandiset is loaded")
    pending_changes: int = Field(..., description="Number of pending changes")
    chat_state: str = Field(..., description="State of the chat orchestrator")
