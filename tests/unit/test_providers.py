"""Unit tests for the inference providers and the provider registry."""

import json
import sys
import types
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import ollama
import pytest
from helpers import ScriptedProvider

from helium_server.errors import (
    InferenceFailedError,
    InvalidConfigurationError,
    ModelNotFoundError,
)
from helium_server.inference.types import (
    AIMode,
    InferenceRequest,
    Message,
    MessageRole,
    ModelConfig,
    ModelParameters,
    ModelProvider,
)
from helium_server.ollama import ModelInfo
from helium_server.providers import (
    ModelCache,
    OllamaProvider,
    OpenAICompatibleProvider,
    ProviderRegistry,
    TransformersProvider,
    load_transformers_pipeline,
    select_model_for_mode,
)
from helium_server.providers.ollama import build_ollama_options
from helium_server.providers.openai_compatible import (
    build_api_url,
    convert_messages_to_openai_format,
)
from helium_server.services.events import ProgressEvent, RunCallbacks


def request_for(provider: ModelProvider, **config) -> InferenceRequest:
    return InferenceRequest(
        session_id="s1",
        model_config=ModelConfig(provider=provider, model_id="test-model", **config),
        messages=(
            Message.create(MessageRole.SYSTEM, "Be brief."),
            Message.create(MessageRole.USER, "Hi"),
        ),
    )


# --- Ollama ---


@pytest.fixture
def mock_ollama_client():
    client = MagicMock()
    client.host = "http://localhost:11434"
    client.check_connection = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


def test_build_ollama_options():
    options = build_ollama_options(
        ModelParameters(
            temperature=0.2,
            top_p=0.5,
            max_tokens=64,
            stop_sequences=("END",),
            context_window=8192,
        )
    )
    assert options == {
        "temperature": 0.2,
        "top_p": 0.5,
        "num_predict": 64,
        "stop": ["END"],
        "num_ctx": 8192,
    }


@pytest.mark.asyncio
async def test_ollama_generate_streams_chunks(mock_ollama_client):
    """Test chunk forwarding, content assembly and token usage."""
    captured = {}

    async def mock_chat_stream(model, messages, options=None):
        captured.update(model=model, messages=messages, options=options)
        yield {"message": {"role": "assistant", "content": "Hello"}, "done": False}
        yield {
            "message": {"role": "assistant", "content": " there"},
            "done": True,
            "eval_count": 5,
            "prompt_eval_count": 20,
        }

    mock_ollama_client.chat_stream = mock_chat_stream
    provider = OllamaProvider(mock_ollama_client)
    chunks = []

    response = await provider.generate(
        request_for(ModelProvider.OLLAMA), RunCallbacks(on_chunk=chunks.append)
    )

    assert response.message.content == "Hello there"
    assert response.message.role == MessageRole.ASSISTANT
    assert chunks == ["Hello", " there"]
    assert response.usage.total_tokens == 25
    assert response.inference_time_ms is not None
    assert captured["model"] == "test-model"
    assert captured["messages"][0] == {"role": "system", "content": "Be brief."}
    assert captured["options"]["num_predict"] == 2048


@pytest.mark.asyncio
async def test_ollama_generate_without_streaming_emits_no_chunks(mock_ollama_client):
    async def mock_chat_stream(model, messages, options=None):
        yield {"message": {"content": "Quiet"}, "done": True}

    mock_ollama_client.chat_stream = mock_chat_stream
    provider = OllamaProvider(mock_ollama_client)
    chunks = []

    response = await provider.generate(
        request_for(ModelProvider.OLLAMA, parameters=ModelParameters(stream=False)),
        RunCallbacks(on_chunk=chunks.append),
    )

    assert response.message.content == "Quiet"
    assert chunks == []
    assert response.usage is None


@pytest.mark.asyncio
async def test_ollama_missing_model_maps_to_model_not_found(mock_ollama_client):
    async def mock_chat_stream(model, messages, options=None):
        raise ollama.ResponseError("model 'test-model' not found", status_code=404)
        yield  # pragma: no cover

    mock_ollama_client.chat_stream = mock_chat_stream
    provider = OllamaProvider(mock_ollama_client)

    with pytest.raises(ModelNotFoundError) as exc_info:
        await provider.generate(request_for(ModelProvider.OLLAMA), RunCallbacks())

    assert exc_info.value.details["model_id"] == "test-model"


@pytest.mark.asyncio
async def test_ollama_connection_failure_maps_to_inference_failed(mock_ollama_client):
    async def mock_chat_stream(model, messages, options=None):
        raise ConnectionError("Connection refused")
        yield  # pragma: no cover

    mock_ollama_client.chat_stream = mock_chat_stream
    provider = OllamaProvider(mock_ollama_client)

    with pytest.raises(InferenceFailedError):
        await provider.generate(request_for(ModelProvider.OLLAMA), RunCallbacks())


@pytest.mark.asyncio
async def test_ollama_stream_without_done_marker_fails(mock_ollama_client):
    async def mock_chat_stream(model, messages, options=None):
        yield {"message": {"content": "Partial"}, "done": False}

    mock_ollama_client.chat_stream = mock_chat_stream
    provider = OllamaProvider(mock_ollama_client)

    with pytest.raises(InferenceFailedError, match="completion marker"):
        await provider.generate(request_for(ModelProvider.OLLAMA), RunCallbacks())


@pytest.mark.asyncio
async def test_ollama_list_models_recommends_modes(mock_ollama_client):
    mock_ollama_client.list_models = AsyncMock(
        return_value=[
            ModelInfo(
                name="llama3.2:3b",
                size_bytes=2_000_000_000,
                family="llama",
                parameter_size="3.2B",
                capabilities=["completion"],
            ),
            ModelInfo(
                name="mistral:7b",
                size_bytes=4_100_000_000,
                family="llama",
                parameter_size="7B",
                capabilities=["completion", "tools"],
            ),
        ]
    )
    provider = OllamaProvider(mock_ollama_client)

    models = await provider.list_models()

    assert [m.model_id for m in models] == ["llama3.2:3b", "mistral:7b"]
    assert models[0].recommended_for == (AIMode.QA,)
    assert models[1].recommended_for == (AIMode.QA, AIMode.AGENT)
    assert models[0].endpoint == "http://localhost:11434"
    assert models[1].size_bytes == 4_100_000_000


@pytest.mark.asyncio
async def test_ollama_availability(mock_ollama_client):
    provider = OllamaProvider(mock_ollama_client)
    assert await provider.check_availability() is True


async def _done_stream(model, messages, options=None):
    yield {"message": {"content": "ok"}, "done": True}


@pytest.mark.asyncio
async def test_ollama_custom_endpoint_uses_short_lived_client(mock_ollama_client):
    """Test that per-request endpoints get a client that is closed afterwards."""
    provider = OllamaProvider(mock_ollama_client)

    with patch("helium_server.providers.ollama.OllamaClient") as client_class:
        created = []

        def make_client(host):
            client = MagicMock()
            client.host = host
            client.chat_stream = _done_stream
            client.close = AsyncMock()
            created.append(client)
            return client

        client_class.side_effect = make_client

        for port in range(100):
            response = await provider.generate(
                request_for(ModelProvider.OLLAMA, endpoint=f"http://gpu-box:{port}"),
                RunCallbacks(),
            )
            assert response.message.content == "ok"

    assert len(created) == 100
    assert [c.host for c in created[:2]] == ["http://gpu-box:0", "http://gpu-box:1"]
    assert all(c.close.await_count == 1 for c in created)

    await provider.close()
    mock_ollama_client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_ollama_default_endpoint_reuses_client(mock_ollama_client):
    mock_ollama_client.chat_stream = _done_stream
    provider = OllamaProvider(mock_ollama_client)

    with patch("helium_server.providers.ollama.OllamaClient") as client_class:
        await provider.generate(
            request_for(ModelProvider.OLLAMA, endpoint="http://localhost:11434/"),
            RunCallbacks(),
        )

    client_class.assert_not_called()
    mock_ollama_client.close.assert_not_awaited()


@pytest.mark.asyncio
async def test_ollama_custom_endpoint_client_closed_on_error(mock_ollama_client):
    provider = OllamaProvider(mock_ollama_client)

    async def failing_stream(model, messages, options=None):
        raise ollama.ResponseError("model not found", status_code=404)
        yield  # pragma: no cover

    with patch("helium_server.providers.ollama.OllamaClient") as client_class:
        temporary = client_class.return_value
        temporary.chat_stream = failing_stream
        temporary.close = AsyncMock()

        with pytest.raises(ModelNotFoundError) as exc_info:
            await provider.generate(
                request_for(ModelProvider.OLLAMA, endpoint="http://gpu-box:11434"),
                RunCallbacks(),
            )

    assert exc_info.value.details["endpoint"] == "http://gpu-box:11434"
    temporary.close.assert_awaited_once()


# --- OpenAI-compatible ---


@pytest.mark.parametrize(
    "endpoint,expected",
    [
        ("http://localhost:8080", "http://localhost:8080/v1/chat/completions"),
        ("http://localhost:8080/", "http://localhost:8080/v1/chat/completions"),
        ("http://localhost:8080/v1", "http://localhost:8080/v1/chat/completions"),
        ("http://localhost:8080/v1/", "http://localhost:8080/v1/chat/completions"),
    ],
)
def test_build_api_url(endpoint, expected):
    assert build_api_url(endpoint, "chat/completions") == expected


def test_openai_format_merges_system_into_first_user_turn():
    messages = (
        Message.create(MessageRole.SYSTEM, "Be brief."),
        Message.create(MessageRole.USER, "Hi"),
        Message.create(MessageRole.ASSISTANT, "Hello"),
        Message.create(MessageRole.USER, "Bye"),
    )

    converted = convert_messages_to_openai_format(messages)

    assert converted == [
        {"role": "user", "content": "Be brief.\n\n---\n\nHi"},
        {"role": "assistant", "content": "Hello"},
        {"role": "user", "content": "Bye"},
    ]


def openai_provider(handler, **kwargs) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        endpoint=kwargs.pop("endpoint", "http://localhost:8080"),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_openai_generate_success():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"role": "assistant", "content": "Hi!"}}],
                "usage": {"prompt_tokens": 7, "completion_tokens": 2, "total_tokens": 9},
            },
        )

    provider = openai_provider(handler, api_key="secret")

    response = await provider.generate(
        request_for(ModelProvider.OPENAI_COMPATIBLE), RunCallbacks()
    )

    assert response.message.content == "Hi!"
    assert response.usage.total_tokens == 9
    assert seen["url"] == "http://localhost:8080/v1/chat/completions"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["stream"] is False
    assert seen["body"]["messages"][0]["role"] == "user"


@pytest.mark.asyncio
async def test_openai_model_endpoint_and_key_override_defaults():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    provider = openai_provider(handler)

    await provider.generate(
        request_for(
            ModelProvider.OPENAI_COMPATIBLE,
            endpoint="http://other:9000/v1",
            api_key="k2",
        ),
        RunCallbacks(),
    )

    assert seen["url"] == "http://other:9000/v1/chat/completions"
    assert seen["auth"] == "Bearer k2"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,body,error_type",
    [
        (404, {"error": "no such model"}, ModelNotFoundError),
        (500, {"error": "boom"}, InferenceFailedError),
        (200, {"choices": []}, InferenceFailedError),
    ],
)
async def test_openai_error_mapping(status, body, error_type):
    provider = openai_provider(lambda request: httpx.Response(status, json=body))

    with pytest.raises(error_type):
        await provider.generate(
            request_for(ModelProvider.OPENAI_COMPATIBLE), RunCallbacks()
        )


@pytest.mark.asyncio
async def test_openai_transport_error_maps_to_inference_failed():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    provider = openai_provider(handler)

    with pytest.raises(InferenceFailedError):
        await provider.generate(
            request_for(ModelProvider.OPENAI_COMPATIBLE), RunCallbacks()
        )


@pytest.mark.asyncio
async def test_openai_without_endpoint_is_invalid_configuration():
    provider = openai_provider(lambda request: httpx.Response(200), endpoint=None)

    with pytest.raises(InvalidConfigurationError):
        await provider.generate(
            request_for(ModelProvider.OPENAI_COMPATIBLE), RunCallbacks()
        )
    assert await provider.check_availability() is False
    assert await provider.list_models() == []


@pytest.mark.asyncio
async def test_openai_availability_and_models():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/models"
        return httpx.Response(
            200, json={"data": [{"id": "qwen2.5-7b"}, {"object": "model"}]}
        )

    provider = openai_provider(handler)

    assert await provider.check_availability() is True
    models = await provider.list_models()
    assert [m.model_id for m in models] == ["qwen2.5-7b"]
    assert models[0].provider == ModelProvider.OPENAI_COMPATIBLE


# --- Transformers ---


def fake_pipeline_loader(text: str, loads: list):
    async def loader(model_id, on_progress):
        loads.append(model_id)
        if on_progress is not None:
            on_progress(ProgressEvent(model_id=model_id, status="ready", progress=1.0))
        return lambda chat, **kwargs: [{"generated_text": text}]

    return loader


@pytest.mark.asyncio
async def test_transformers_generate_emulates_streaming():
    loads = []
    provider = TransformersProvider(ModelCache(fake_pipeline_loader("Hello small world", loads)))
    chunks, progress = [], []

    response = await provider.generate(
        request_for(ModelProvider.TRANSFORMERS),
        RunCallbacks(on_chunk=chunks.append, on_progress=progress.append),
    )

    assert response.message.content == "Hello small world"
    assert chunks == ["Hello ", "small ", "world"]
    assert "".join(chunks) == response.message.content
    assert progress[0].status == "ready"
    assert loads == ["test-model"]


@pytest.mark.asyncio
async def test_transformers_reuses_cached_model():
    loads = []
    provider = TransformersProvider(ModelCache(fake_pipeline_loader("ok", loads)))

    await provider.generate(request_for(ModelProvider.TRANSFORMERS), RunCallbacks())
    await provider.generate(request_for(ModelProvider.TRANSFORMERS), RunCallbacks())

    assert loads == ["test-model"]


@pytest.mark.asyncio
async def test_transformers_handles_chat_shaped_output():
    async def loader(model_id, on_progress):
        return lambda chat, **kwargs: [
            {"generated_text": [*chat, {"role": "assistant", "content": "From chat"}]}
        ]

    provider = TransformersProvider(ModelCache(loader))

    response = await provider.generate(
        request_for(ModelProvider.TRANSFORMERS, parameters=ModelParameters(stream=False)),
        RunCallbacks(),
    )

    assert response.message.content == "From chat"


@pytest.mark.asyncio
async def test_transformers_requires_user_message():
    provider = TransformersProvider(ModelCache(fake_pipeline_loader("x", [])))
    request = InferenceRequest(
        session_id="s1",
        model_config=ModelConfig(provider=ModelProvider.TRANSFORMERS, model_id="m"),
        messages=(Message.create(MessageRole.SYSTEM, "only system"),),
    )

    with pytest.raises(InvalidConfigurationError):
        await provider.generate(request, RunCallbacks())


@pytest.mark.asyncio
async def test_transformers_load_failure_maps_to_model_not_found():
    async def loader(model_id, on_progress):
        raise OSError("repository not found")

    provider = TransformersProvider(ModelCache(loader))

    with pytest.raises(ModelNotFoundError):
        await provider.generate(request_for(ModelProvider.TRANSFORMERS), RunCallbacks())


@pytest.mark.asyncio
async def test_transformers_generation_failure_maps_to_inference_failed():
    def broken_pipeline(chat, **kwargs):
        raise RuntimeError("CUDA out of memory")

    async def loader(model_id, on_progress):
        return broken_pipeline

    provider = TransformersProvider(ModelCache(loader))

    with pytest.raises(InferenceFailedError, match="CUDA out of memory"):
        await provider.generate(request_for(ModelProvider.TRANSFORMERS), RunCallbacks())


@pytest.mark.asyncio
async def test_transformers_lists_known_models():
    provider = TransformersProvider(ModelCache(fake_pipeline_loader("x", [])))

    models = await provider.list_models()

    assert models
    assert all(m.provider == ModelProvider.TRANSFORMERS for m in models)
    assert all(AIMode.QA in m.recommended_for for m in models)


@pytest.mark.asyncio
async def test_load_pipeline_without_transformers_installed(monkeypatch):
    monkeypatch.setitem(sys.modules, "transformers", None)

    with pytest.raises(ModelNotFoundError, match="not installed"):
        await load_transformers_pipeline("tiny")


@pytest.mark.asyncio
async def test_load_pipeline_reports_progress(monkeypatch):
    fake_module = types.ModuleType("transformers")
    fake_module.pipeline = MagicMock(return_value="generator")
    monkeypatch.setitem(sys.modules, "transformers", fake_module)
    events = []

    generator = await load_transformers_pipeline("tiny", events.append)

    assert generator == "generator"
    fake_module.pipeline.assert_called_once_with("text-generation", model="tiny")
    assert [e.status for e in events] == ["loading", "ready"]
    assert events[-1].progress == 1.0


# --- Registry ---


def test_registry_returns_configured_provider():
    provider = ScriptedProvider([])
    registry = ProviderRegistry(ollama=provider)

    assert registry.get(ModelProvider.OLLAMA) is provider


def test_registry_rejects_unconfigured_provider():
    registry = ProviderRegistry()

    with pytest.raises(InvalidConfigurationError):
        registry.get(ModelProvider.OPENAI_COMPATIBLE)


@pytest.mark.asyncio
async def test_registry_statuses():
    registry = ProviderRegistry(ollama=ScriptedProvider([]))

    statuses = {s.provider: s for s in await registry.statuses()}

    assert statuses[ModelProvider.OLLAMA].available is True
    assert statuses[ModelProvider.OLLAMA].configured is True
    assert statuses[ModelProvider.TRANSFORMERS].configured is False
    assert statuses[ModelProvider.TRANSFORMERS].available is False


def model(model_id: str, size: int | None, *modes: AIMode) -> ModelConfig:
    return ModelConfig(
        provider=ModelProvider.OLLAMA,
        model_id=model_id,
        size_bytes=size,
        recommended_for=modes,
    )


def test_select_model_for_mode():
    """Test smallest for summarize, largest for agent, first for QA."""
    models = [
        model("llama3.2:1b", 1_300_000_000, AIMode.QA, AIMode.SUMMARIZE),
        model("llama3.2:3b", 2_000_000_000, AIMode.QA, AIMode.AGENT),
        model("mistral", 4_100_000_000, AIMode.AGENT),
        model("qwen-tiny", 350_000_000, AIMode.AGENT),
        model("gemma:2b", 1_500_000_000, AIMode.SUMMARIZE),
    ]

    assert select_model_for_mode(AIMode.SUMMARIZE, models).model_id == "llama3.2:1b"
    assert select_model_for_mode(AIMode.AGENT, models).model_id == "mistral"
    assert select_model_for_mode(AIMode.QA, models).model_id == "llama3.2:1b"


def test_select_model_unknown_sizes():
    models = [
        model("unsized", None, AIMode.SUMMARIZE, AIMode.AGENT),
        model("sized", 10, AIMode.SUMMARIZE, AIMode.AGENT),
    ]

    assert select_model_for_mode(AIMode.SUMMARIZE, models).model_id == "sized"
    assert select_model_for_mode(AIMode.AGENT, models).model_id == "sized"


def test_select_model_fallbacks():
    plain = [model("a", 1), model("b", 2)]

    assert select_model_for_mode(AIMode.AGENT, plain).model_id == "a"
    assert select_model_for_mode(AIMode.QA, []) is None
