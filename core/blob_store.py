# --- File: core/blob_store.py ---
import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

import config
from zk_crypto_package.errors import BackendUnavailableError, MessageNotFoundError, OperationTimeoutError

# --- Blob Storage ---


class BlobStore(ABC):
    """Opaque content storage: put(bytes) -> blob id, get(blob id) -> bytes."""

    @abstractmethod
    async def put(self, data: bytes, timeout: Optional[float] = None) -> str:
        ...

    @abstractmethod
    async def get(self, blob_id: str, timeout: Optional[float] = None) -> bytes:
        ...


class WalrusBlobStore(BlobStore):
    """
    Walrus publisher/aggregator HTTP API.
    Writes go to ``PUT {publisher}/v1/blobs``, reads to ``GET {aggregator}/v1/blobs/{id}``.
    The blocking requests calls run in a worker thread.
    """

    def __init__(
        self,
        publisher_url: str = config.WALRUS_PUBLISHER_URL,
        aggregator_url: str = config.WALRUS_AGGREGATOR_URL,
        epochs: Optional[int] = config.WALRUS_EPOCHS,
        session: Optional[requests.Session] = None,
    ):
        self.publisher_url = publisher_url.rstrip("/")
        self.aggregator_url = aggregator_url.rstrip("/")
        self.epochs = epochs
        self.session = session or requests.Session()
        logging.info(f"Walrus blob store initialized (publisher: {self.publisher_url}, aggregator: {self.aggregator_url})")

    def _put_sync(self, data: bytes, timeout: Optional[float]) -> str:
        params = {"epochs": self.epochs} if self.epochs else None
        try:
            response = self.session.put(
                f"{self.publisher_url}/v1/blobs",
                data=data,
                params=params,
                headers={"Content-Type": "application/octet-stream"},
                timeout=timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.Timeout as e:
            raise OperationTimeoutError(f"Walrus store timed out after {timeout}s.") from e
        except (requests.RequestException, ValueError) as e:
            logging.error(f"Error storing blob in Walrus: {e}")
            raise BackendUnavailableError("Failed to store blob in Walrus.") from e

        if "newlyCreated" in body:
            blob_id = body["newlyCreated"].get("blobObject", {}).get("blobId")
        elif "alreadyCertified" in body:
            blob_id = body["alreadyCertified"].get("blobId")
        else:
            blob_id = None
        if not blob_id:
            logging.error(f"Unexpected Walrus store response: {str(body)[:200]}")
            raise BackendUnavailableError("Walrus store response did not contain a blob id.")
        logging.info(f"Blob stored in Walrus: {blob_id}")
        return blob_id

    def _get_sync(self, blob_id: str, timeout: Optional[float]) -> bytes:
        try:
            response = self.session.get(f"{self.aggregator_url}/v1/blobs/{blob_id}", timeout=timeout)
            if response.status_code == 404:
                raise MessageNotFoundError(f"Blob '{blob_id}' not found in Walrus.")
            response.raise_for_status()
        except requests.Timeout as e:
            raise OperationTimeoutError(f"Walrus retrieval timed out after {timeout}s.") from e
        except requests.RequestException as e:
            logging.error(f"Error retrieving blob {blob_id} from Walrus: {e}")
            raise BackendUnavailableError("Failed to retrieve blob from Walrus.") from e
        return response.content

    async def put(self, data: bytes, timeout: Optional[float] = None) -> str:
        return await asyncio.to_thread(self._put_sync, data, timeout)

    async def get(self, blob_id: str, timeout: Optional[float] = None) -> bytes:
        return await asyncio.to_thread(self._get_sync, blob_id, timeout)


class InMemoryBlobStore(BlobStore):
    """Content-addressed (SHA-256) store for local development and tests."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    async def put(self, data: bytes, timeout: Optional[float] = None) -> str:
        blob_id = hashlib.sha256(data).hexdigest()
        self._blobs[blob_id] = bytes(data)
        logging.debug(f"Blob stored in memory: {blob_id}")
        return blob_id

    async def get(self, blob_id: str, timeout: Optional[float] = None) -> bytes:
        try:
            return self._blobs[blob_id]
        except KeyError:
            raise MessageNotFoundError(f"Blob '{blob_id}' not found.") from None


def create_blob_store(provider: str = config.BLOB_STORE_PROVIDER) -> BlobStore:
    if provider == "walrus":
        return WalrusBlobStore()
    elif provider == "memory":
        logging.warning("Using in-memory blob store. Stored envelopes are lost on restart.")
        return InMemoryBlobStore()
    raise ValueError(f"Unknown blob store provider: {provider}")
