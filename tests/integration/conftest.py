"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that ensure
proper test isolation and mocking for API endpoint tests.
"""

from unittest.mock import AsyncMock, patch

import pytest

from helium_server.ollama import ModelInfo


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    Tests replace ``chat_stream`` with an async generator function.
    """
    with patch("helium_server.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.check_connection.return_value = True
        mock_instance.list_models.return_value = [
            ModelInfo(
                name="llama3.2:3b",
                size_bytes=2_019_393_189,
                family="llama",
                parameter_size="3.2B",
                capabilities=["completion"],
            ),
            ModelInfo(
                name="qwen2.5:7b",
                size_bytes=4_683_087_332,
                family="qwen2",
                parameter_size="7.6B",
                capabilities=["completion", "tools"],
            ),
        ]

        mock_client_class.return_value = mock_instance

        yield mock_instance

