"""
Content store collaborator - evidence upload (transcripts)

The engine only consumes the returned content identifier (CID).

- MockIPFSStore: simulated upload, pseudo-CID, bytes kept in memory
- PinningServiceStore: optional proxy to a Pinata-style pinning API
"""

import asyncio
import json
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from .exceptions import StorageError

logger = logging.getLogger(__name__)

Content = Union[bytes, Dict[str, Any]]


@dataclass
class UploadResult:
    cid: str


class ContentStore(ABC):
    """Upload interface; returns a content identifier"""

    @abstractmethod
    async def upload(self, content: Content, filename: Optional[str] = None) -> UploadResult:
        ...


def _to_bytes(content: Content) -> bytes:
    if isinstance(content, bytes):
        return content
    return json.dumps(content, separators=(',', ':'), ensure_ascii=False).encode("utf-8")


class MockIPFSStore(ContentStore):
    """Simulates an IPFS upload after a fixed delay"""

    CID_PREFIX = "bafybeig"

    def __init__(self, delay_seconds: float = 0.5):
        self.delay_seconds = delay_seconds
        self._objects: Dict[str, bytes] = {}

    async def upload(self, content: Content, filename: Optional[str] = None) -> UploadResult:
        logger.info(f"Simulating IPFS upload for: {filename or type(content).__name__}")

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        # 46 random hex chars, same length as the original pseudo-CIDs
        cid = self.CID_PREFIX + secrets.token_hex(23)
        self._objects[cid] = _to_bytes(content)

        logger.info(f"Generated pseudo-CID: {cid}")
        return UploadResult(cid=cid)

    def get(self, cid: str) -> Optional[bytes]:
        return self._objects.get(cid)


class PinningServiceStore(ContentStore):
    """
    Uploads through a pinning service HTTP API

    Files go to /pinning/pinFileToIPFS (multipart), JSON objects to
    /pinning/pinJSONToIPFS; the CID is read from the IpfsHash member.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def upload(self, content: Content, filename: Optional[str] = None) -> UploadResult:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport
        ) as client:
            try:
                if isinstance(content, bytes):
                    response = await client.post(
                        "/pinning/pinFileToIPFS",
                        files={"file": (filename or "upload.bin", content)}
                    )
                else:
                    response = await client.post(
                        "/pinning/pinJSONToIPFS",
                        json={
                            "pinataContent": content,
                            "pinataMetadata": {"name": filename or "credential.json"}
                        }
                    )
                response.raise_for_status()
                body = response.json()
            except httpx.HTTPError as e:
                raise StorageError(f"Pinning service upload failed: {e}") from e
            except ValueError as e:
                raise StorageError("Pinning service returned invalid JSON") from e

        cid = body.get("IpfsHash") if isinstance(body, dict) else None
        if not cid:
            raise StorageError("Pinning service response has no IpfsHash")

        logger.info(f"Pinned {filename or 'object'} as {cid}")
        return UploadResult(cid=cid)
