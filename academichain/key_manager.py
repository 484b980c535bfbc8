"""
Key Manager - secp256k1 identities for the university and the student

Each scope owns one long-lived Ethereum-style keypair. The private key is
persisted (plaintext, demo-grade) in a key-value store so the same
identity survives restarts; the DID is derived from the key's address.

WARNING: keys are stored unencrypted. In production, use proper key
management (HSM, KMS).
"""

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct

from .did_manager import DIDMethod, did_from_address, verification_method_for
from .exceptions import IdentityLoadError

logger = logging.getLogger(__name__)


class IdentityScope(Enum):
    """Which party an identity belongs to"""
    INSTITUTION = "university"
    HOLDER = "student"

    @property
    def storage_key(self) -> str:
        return f"{self.value}_private_key"


# ==================== KEY-VALUE STORES ====================

class KeyValueStore(ABC):
    """Durable string store used to persist key material"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used by tests"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """
    Key-value store backed by a single JSON file

    The whole file is rewritten on every set; the store holds a handful
    of entries (two keys and the wallet).
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Key store {self.path} does not contain an object")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


# ==================== IDENTITY ====================

class Identity:
    """
    A keypair bound to an address-derived DID

    Signing follows the Ethereum personal-message convention (EIP-191), so
    the signer's address can be recovered from (message, signature).
    """

    def __init__(self, scope: IdentityScope, private_key: str, did_method: str = DIDMethod.ETHR.value):
        self.scope = scope
        self.did_method = did_method
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def did(self) -> str:
        return did_from_address(self.address, self.did_method)

    @property
    def verification_method(self) -> str:
        return verification_method_for(self.did)

    @property
    def private_key(self) -> str:
        return "0x" + bytes(self._account.key).hex()

    def sign(self, message: bytes) -> str:
        """
        Sign raw message bytes

        Returns:
            0x-prefixed hex of the 65-byte r||s||v signature
        """
        signable = encode_defunct(primitive=message)
        signed = self._account.sign_message(signable)
        return "0x" + bytes(signed.signature).hex()

    def __repr__(self) -> str:
        return f"Identity(scope={self.scope.value}, did={self.did})"


class IdentityProvider:
    """
    Supplies one identity per scope

    Identities are created lazily on first use, persisted in the key-value
    store and cached for the lifetime of the provider. The cache has no
    expiry; call reset() to drop it.
    """

    def __init__(self, store: KeyValueStore, did_method: str = DIDMethod.ETHR.value):
        self.store = store
        self.did_method = did_method
        self._identities: Dict[IdentityScope, Identity] = {}

    def get_or_create_identity(self, scope: IdentityScope) -> Identity:
        identity = self._identities.get(scope)
        if identity:
            return identity

        if self._read_stored_key(scope) is not None:
            return self.load(scope)

        account = Account.create()
        identity = Identity(scope, "0x" + bytes(account.key).hex(), self.did_method)
        self.store.set(scope.storage_key, identity.private_key)
        logger.info(f"New {scope.value} identity created. Address: {identity.address}")

        self._identities[scope] = identity
        return identity

    def load(self, scope: IdentityScope) -> Identity:
        """
        Load the identity for a scope from the store

        Raises:
            IdentityLoadError: if no key is stored or it cannot be parsed
        """
        stored = self._read_stored_key(scope)
        if stored is None:
            raise IdentityLoadError(scope.value, "no key stored")

        try:
            identity = Identity(scope, stored, self.did_method)
        except Exception as e:
            raise IdentityLoadError(scope.value, "stored key is corrupt") from e

        self._identities[scope] = identity
        return identity

    def _read_stored_key(self, scope: IdentityScope) -> Optional[str]:
        try:
            return self.store.get(scope.storage_key)
        except (OSError, ValueError) as e:
            raise IdentityLoadError(scope.value, f"key store unreadable ({e})") from e

    def reset(self, scope: Optional[IdentityScope] = None) -> None:
        """Forget cached identities (stored keys are kept)"""
        if scope is None:
            self._identities.clear()
        else:
            self._identities.pop(scope, None)

    def institution(self) -> Identity:
        return self.get_or_create_identity(IdentityScope.INSTITUTION)

    def holder(self) -> Identity:
        return self.get_or_create_identity(IdentityScope.HOLDER)
