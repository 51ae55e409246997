"""Tool discovery endpoint."""

from fastapi import APIRouter, Depends

from helium_server.dependencies import get_tool_service
from helium_server.models.tools import ToolInfo, ToolListResponse
from helium_server.tools import ToolExecutionService

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


@router.get("", response_model=ToolListResponse)
async def list_tools(
    tool_service: ToolExecutionService = Depends(get_tool_service),
) -> ToolListResponse:
    """List the tools the model may call, with their argument schemas."""
    return ToolListResponse(
        tools=[
            ToolInfo(
                name=tool.name,
                description=tool.description,
                read_only=tool.read_only,
                input_schema=tool.input_schema(),
            )
            for tool in tool_service.list_tools()
        ]
    )
