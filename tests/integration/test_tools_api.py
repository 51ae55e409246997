"""Integration tests for the tools API endpoint."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_tools(async_client: AsyncClient):
    response = await async_client.get("/api/v1/tools")

    assert response.status_code == 200
    tools = {tool["name"]: tool for tool in response.json()["tools"]}
    assert set(tools) == {
        "read_file",
        "list_directory",
        "search_files",
        "get_file_info",
        "get_directory_size",
        "directory_tree",
        "read_multiple_files",
        "list_allowed_directories",
    }
    assert all(tool["read_only"] for tool in tools.values())


@pytest.mark.asyncio
async def test_tool_schemas(async_client: AsyncClient):
    """Test that argument schemas are JSON schemas of the input models."""
    response = await async_client.get("/api/v1/tools")

    tools = {tool["name"]: tool for tool in response.json()["tools"]}
    read_schema = tools["read_file"]["input_schema"]
    assert read_schema["type"] == "object"
    assert read_schema["required"] == ["path"]

    search_schema = tools["search_files"]["input_schema"]
    assert set(search_schema["required"]) == {"directory", "pattern"}


@pytest.mark.asyncio
async def test_directory_tree_schema_has_default_depth(async_client: AsyncClient):
    response = await async_client.get("/api/v1/tools")

    tools = {tool["name"]: tool for tool in response.json()["tools"]}
    tree_schema = tools["directory_tree"]["input_schema"]
    assert tree_schema["required"] == ["path"]
    assert tree_schema["properties"]["max_depth"]["default"] == 5
