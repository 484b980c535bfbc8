"""
Ledger collaborator - DID registry, anchoring and revocation

The real implementation is a smart contract. Two stand-ins are provided:

- InMemoryLedger: plain dictionaries, no latency (tests)
- SimulatedContractLedger: same state, plus a fixed simulated network
  delay per call and transaction hashes, shaped like a contract client

Neither retries nor times out; a production client must define both.
"""

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class AnchorReceipt:
    """Result of anchoring a credential hash"""
    success: bool
    tx_hash: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {"success": self.success, "txHash": self.tx_hash}


@dataclass
class AnchorRecord:
    signer: str
    tx_hash: str
    anchored_at: str


class Ledger(ABC):
    """Ledger interface consumed by the issuer and verifier"""

    @abstractmethod
    async def is_revoked(self, credential_hash: str) -> bool:
        ...

    @abstractmethod
    async def anchor_credential(self, credential_hash: str, signer_address: str) -> AnchorReceipt:
        ...

    @abstractmethod
    async def register_identity(self, did: str, address: str) -> None:
        ...

    @abstractmethod
    async def get_controller(self, did: str) -> Optional[str]:
        ...

    @abstractmethod
    async def revoke(self, credential_hash: str) -> None:
        ...


class InMemoryLedger(Ledger):
    """Ledger state held in process memory"""

    def __init__(self):
        self._controllers: Dict[str, str] = {}
        self._anchors: Dict[str, AnchorRecord] = {}
        self._revoked: Set[str] = set()

    @staticmethod
    def _normalize(credential_hash: str) -> str:
        return credential_hash.lower()

    async def is_revoked(self, credential_hash: str) -> bool:
        return self._normalize(credential_hash) in self._revoked

    async def anchor_credential(self, credential_hash: str, signer_address: str) -> AnchorReceipt:
        tx_hash = "0x" + secrets.token_hex(32)
        self._anchors[self._normalize(credential_hash)] = AnchorRecord(
            signer=signer_address,
            tx_hash=tx_hash,
            anchored_at=datetime.now(timezone.utc).isoformat()
        )
        return AnchorReceipt(success=True, tx_hash=tx_hash)

    async def register_identity(self, did: str, address: str) -> None:
        self._controllers[did] = address

    async def get_controller(self, did: str) -> Optional[str]:
        return self._controllers.get(did)

    async def revoke(self, credential_hash: str) -> None:
        self._revoked.add(self._normalize(credential_hash))

    # ==================== INSPECTION ====================

    def get_anchor(self, credential_hash: str) -> Optional[AnchorRecord]:
        return self._anchors.get(self._normalize(credential_hash))

    def get_statistics(self) -> Dict[str, int]:
        return {
            "registered_identities": len(self._controllers),
            "anchored_credentials": len(self._anchors),
            "revoked_credentials": len(self._revoked)
        }


class SimulatedContractLedger(InMemoryLedger):
    """In-memory ledger with a fixed simulated delay on every call"""

    def __init__(self, delay_seconds: float = 0.5):
        super().__init__()
        self.delay_seconds = delay_seconds

    async def _network_delay(self):
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

    async def is_revoked(self, credential_hash: str) -> bool:
        await self._network_delay()
        revoked = await super().is_revoked(credential_hash)
        logger.info(f"Revocation lookup (mock) {credential_hash[:12]}...: {revoked}")
        return revoked

    async def anchor_credential(self, credential_hash: str, signer_address: str) -> AnchorReceipt:
        await self._network_delay()
        receipt = await super().anchor_credential(credential_hash, signer_address)
        logger.info(f"Credential hash anchored (mock) by {signer_address}. Tx: {receipt.tx_hash}")
        return receipt

    async def register_identity(self, did: str, address: str) -> None:
        await self._network_delay()
        await super().register_identity(did, address)
        logger.info(f"DID registered (mock): {did} -> {address}")

    async def get_controller(self, did: str) -> Optional[str]:
        await self._network_delay()
        return await super().get_controller(did)

    async def revoke(self, credential_hash: str) -> None:
        await self._network_delay()
        await super().revoke(credential_hash)
        logger.info(f"Credential hash revoked (mock): {credential_hash}")
