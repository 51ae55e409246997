"""helium-server: Headless FastAPI server for tool-calling LLM inference.

This package provides a REST API and SSE streaming interface that runs a
bounded tool-calling loop against Ollama, OpenAI-compatible servers or
in-process transformers models, with read-only file-system tools.
"""

from helium_server.app import create_app

__version__ = "0.1.0"

__all__ = ["create_app", "__version__"]
