"""Tool argument and result models for the Metadata Assistant."""

import json
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProposeChangeParams(BaseModel):
    """Arguments of the propose_metadata_change tool."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., description="Dot-separated path of the field to change")
    new_value: Any = Field(default=None, alias="newValue", description="New JSON value for the field")
    delete: bool = Field(default=False, description="Remove the field instead of setting it")
    reason: Optional[str] = Field(default=None, description="Short justification shown to the user")

    # set when the caller omitted newValue entirely
    has_new_value: bool = Field(default=True, exclude=True)

    @model_validator(mode='before')
    @classmethod
    def record_new_value_presence(cls, data):
        """Track whether newValue was supplied, null is a legitimate value."""
        if isinstance(data, dict):
            data = dict(data)
            data["has_new_value"] = "newValue" in data or "new_value" in data
        return data

    @field_validator('path')
    @classmethod
    def validate_path(cls, v):
        """Ensure path is not blank."""
        if not v or not v.strip():
            raise ValueError("Path cannot be empty")
        return v.strip()

    @model_validator(mode='after')
    def validate_value_or_delete(self):
        """Either a new value or a deletion must be requested."""
        if not self.delete and not self.has_new_value:
            raise ValueError("newValue is required unless delete is true")
        return self


class LookupOntologyParams(BaseModel):
    """Arguments of the lookup_ontology_term tool."""

    model_config = ConfigDict(populate_by_name=True)

    term: str = Field(..., description="Term to search for")
    category: Literal["anatomy", "disorder", "cognitive", "auto"] = Field(default="auto")
    max_results: int = Field(default=5, alias="maxResults")

    @field_validator('term')
    @classmethod
    def validate_term(cls, v):
        """Ensure the search term is not blank."""
        if not v or not v.strip():
            raise ValueError("Please provide a search term.")
        return v.strip()

    @field_validator('max_results', mode='before')
    @classmethod
    def clamp_max_results(cls, v):
        """Clamp the result count to 1..10."""
        try:
            v = int(v)
        except (TypeError, ValueError):
            return 5
        return min(max(1, v), 10)


class FetchUrlParams(BaseModel):
    """Arguments of the fetch_url tool."""

    url: str = Field(..., description="http(s) URL to fetch")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        """Only http and https URLs can be fetched."""
        v = (v or "").strip()
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("URLs must start with http:// or https://")
        return v


class RevertChangeParams(BaseModel):
    """Arguments of the revert_metadata_change tool."""

    path: str = Field(..., description="Path of the pending change to revert")


class ToolResult(BaseModel):
    """Outcome of a tool execution, folded into the transcript as JSON text."""

    tool_call_id: str
    tool_name: str
    success: bool
    payload: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    hint: Optional[str] = None

    def to_content(self) -> str:
        """Encode as the ``{success, ...payload | error, hint?}`` wire string."""
        body: Dict[str, Any] = {"success": self.success}
        if self.success:
            body.update(self.payload)
        else:
            body["error"] = self.error or "Tool execution failed"
            body.update({k: v for k, v in self.payload.items() if k not in body})
        if self.hint:
            body["hint"] = self.hint
        return json.dumps(body, ensure_ascii=False, default=str)

