import json

import httpx
import pytest

from aqar.config import Settings
from aqar.errors import EmbeddingProviderError
from aqar.services.embedding_service import EmbeddingService


@pytest.fixture
def embedding_settings(tmp_path):
    return Settings(
        _env_file=None,
        data_dir=tmp_path,
        embedding_api_key="test-key",
        embedding_base_url="https://embeddings.test/v1/",
        embedding_model="test-model",
        embedding_max_retries=2,
    )


def make_service(settings, handler):
    return EmbeddingService(settings, transport=httpx.MockTransport(handler), retry_backoff=0)


def ok(vectors):
    return httpx.Response(
        200,
        json={"data": [{"index": i, "embedding": v} for i, v in enumerate(vectors)]},
    )


async def test_embed(embedding_settings):
    seen = []

    def handler(request):
        seen.append(request)
        return ok([[0.1, 0.2, 0.3]])

    service = make_service(embedding_settings, handler)
    try:
        vector = await service.embed("فيلا في الرياض")
    finally:
        await service.close()

    assert vector == pytest.approx([0.1, 0.2, 0.3])
    [request] = seen
    assert str(request.url) == "https://embeddings.test/v1/embeddings"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert json.loads(request.content) == {"model": "test-model", "input": ["فيلا في الرياض"]}


async def test_embed_many_keeps_input_order(embedding_settings):
    def handler(request):
        return httpx.Response(
            200,
            json={"data": [{"index": 1, "embedding": [2.0]}, {"index": 0, "embedding": [1.0]}]},
        )

    service = make_service(embedding_settings, handler)
    assert await service.embed_many(["a", "b"]) == [[1.0], [2.0]]
    await service.close()


async def test_retries_server_errors(embedding_settings):
    responses = [httpx.Response(503), httpx.Response(429), ok([[1.0]])]

    def handler(request):
        return responses.pop(0)

    service = make_service(embedding_settings, handler)
    assert await service.embed("x") == [1.0]
    assert responses == []
    await service.close()


async def test_gives_up_after_max_retries(embedding_settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    service = make_service(embedding_settings, handler)
    with pytest.raises(EmbeddingProviderError) as excinfo:
        await service.embed("x")
    await service.close()

    assert len(calls) == 3
    assert excinfo.value.status_code == 500
    assert excinfo.value.retryable


async def test_client_errors_are_not_retried(embedding_settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": "bad input"})

    service = make_service(embedding_settings, handler)
    with pytest.raises(EmbeddingProviderError) as excinfo:
        await service.embed("x")
    await service.close()

    assert len(calls) == 1
    assert excinfo.value.status_code == 400
    assert not excinfo.value.retryable


async def test_connection_failure(embedding_settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    service = make_service(embedding_settings, handler)
    with pytest.raises(EmbeddingProviderError) as excinfo:
        await service.embed("x")
    await service.close()

    assert excinfo.value.status_code is None


async def test_malformed_response(embedding_settings):
    service = make_service(embedding_settings, lambda request: httpx.Response(200, json={"oops": 1}))
    with pytest.raises(EmbeddingProviderError) as excinfo:
        await service.embed("x")
    await service.close()

    assert not excinfo.value.retryable


async def test_empty_batch_makes_no_request(embedding_settings):
    def handler(request):
        raise AssertionError("no request expected")

    service = make_service(embedding_settings, handler)
    assert await service.embed_many([]) == []
    await service.close()
