"""Pydantic models for the tools API."""

from typing import Any

from pydantic import BaseModel


class ToolInfo(BaseModel):
    name: str
    description: str
    read_only: bool
    input_schema: dict[str, Any]


class ToolListResponse(BaseModel):
    tools: list[ToolInfo]
