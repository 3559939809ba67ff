import pytest
import requests

from core.blob_store import InMemoryBlobStore, WalrusBlobStore, create_blob_store
from zk_crypto_package.errors import BackendUnavailableError, MessageNotFoundError, OperationTimeoutError


class FakeResponse:
    def __init__(self, status_code=200, body=None, content=b""):
        self.status_code = status_code
        self._body = body
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _respond(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def put(self, url, **kwargs):
        return self._respond("PUT", url, **kwargs)

    def get(self, url, **kwargs):
        return self._respond("GET", url, **kwargs)


def _walrus(session):
    return WalrusBlobStore("https://publisher.example/", "https://aggregator.example", epochs=3, session=session)


@pytest.mark.asyncio
async def test_in_memory_round_trip_is_content_addressed():
    store = InMemoryBlobStore()
    first = await store.put(b"payload")
    assert await store.put(b"payload") == first
    assert await store.get(first) == b"payload"
    with pytest.raises(MessageNotFoundError):
        await store.get("unknown")


@pytest.mark.asyncio
async def test_walrus_put_newly_created():
    session = FakeSession(FakeResponse(body={"newlyCreated": {"blobObject": {"blobId": "blob-new"}}}))
    assert await _walrus(session).put(b"data", timeout=5) == "blob-new"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("PUT", "https://publisher.example/v1/blobs")
    assert kwargs["data"] == b"data"
    assert kwargs["params"] == {"epochs": 3}
    assert kwargs["timeout"] == 5


@pytest.mark.asyncio
async def test_walrus_put_already_certified():
    session = FakeSession(FakeResponse(body={"alreadyCertified": {"blobId": "blob-old"}}))
    assert await _walrus(session).put(b"data") == "blob-old"


@pytest.mark.asyncio
async def test_walrus_put_unexpected_body():
    session = FakeSession(FakeResponse(body={"something": "else"}))
    with pytest.raises(BackendUnavailableError):
        await _walrus(session).put(b"data")


@pytest.mark.asyncio
async def test_walrus_get():
    session = FakeSession(FakeResponse(content=b"stored"))
    assert await _walrus(session).get("blob-1") == b"stored"
    assert session.calls[0][1] == "https://aggregator.example/v1/blobs/blob-1"


@pytest.mark.asyncio
async def test_walrus_get_missing_blob():
    session = FakeSession(FakeResponse(status_code=404))
    with pytest.raises(MessageNotFoundError):
        await _walrus(session).get("blob-1")


@pytest.mark.asyncio
async def test_walrus_errors_map_to_protocol_errors():
    with pytest.raises(OperationTimeoutError):
        await _walrus(FakeSession(error=requests.Timeout())).put(b"data", timeout=1)
    with pytest.raises(BackendUnavailableError):
        await _walrus(FakeSession(error=requests.ConnectionError())).get("blob-1")
    with pytest.raises(BackendUnavailableError):
        await _walrus(FakeSession(FakeResponse(status_code=500))).put(b"data")


def test_factory():
    assert isinstance(create_blob_store("memory"), InMemoryBlobStore)
    assert isinstance(create_blob_store("walrus"), WalrusBlobStore)
    with pytest.raises(ValueError):
        create_blob_store("s3")
