"""
Student wallet - ordered credential store keyed by credential id

Credentials are persisted as a JSON list in the same key-value store that
holds the student's key. Importing a credential whose id is already held
is a no-op with an informational outcome.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .codec import decode_credential, encode_credential
from .credential import VerifiableCredential
from .exceptions import DuplicateCredentialError
from .key_manager import KeyValueStore

logger = logging.getLogger(__name__)


class ImportStatus(Enum):
    IMPORTED = "imported"
    DUPLICATE = "duplicate"


@dataclass
class ImportResult:
    status: ImportStatus
    credential: VerifiableCredential

    @property
    def message(self) -> str:
        if self.status == ImportStatus.DUPLICATE:
            return "This credential is already in your wallet."
        return "Credential imported successfully!"

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status.value,
            "message": self.message,
            "credentialId": self.credential.id
        }


class CredentialWallet:
    """Holder-side credential collection"""

    def __init__(self, store: KeyValueStore, storage_key: str = "student_credentials"):
        self.store = store
        self.storage_key = storage_key
        self._credentials: Dict[str, VerifiableCredential] = {}
        self._load()

    def _load(self):
        raw = self.store.get(self.storage_key)
        if not raw:
            return
        for item in json.loads(raw):
            credential = VerifiableCredential.from_dict(item)
            self._credentials[credential.id] = credential

    def _save(self):
        payload = [vc.to_dict() for vc in self._credentials.values()]
        self.store.set(self.storage_key, json.dumps(payload, ensure_ascii=False))

    # ==================== STORE ====================

    def add(self, credential: VerifiableCredential) -> VerifiableCredential:
        """
        Append a credential

        Raises:
            DuplicateCredentialError: if the id is already held
        """
        if credential.id in self._credentials:
            raise DuplicateCredentialError(credential.id)
        self._credentials[credential.id] = credential
        self._save()
        return credential

    def import_credential(self, data: str) -> ImportResult:
        """
        Import a credential from base64 text or raw JSON

        Raises:
            MalformedCredentialError: the store is left untouched
        """
        credential = decode_credential(data)
        try:
            self.add(credential)
        except DuplicateCredentialError:
            logger.info(f"Credential {credential.id} already held; import skipped")
            return ImportResult(ImportStatus.DUPLICATE, self._credentials[credential.id])

        logger.info(f"Credential {credential.id} imported")
        return ImportResult(ImportStatus.IMPORTED, credential)

    def export(self, credential_id: str) -> str:
        """Encoded text for copy/paste or QR; KeyError if not held"""
        return encode_credential(self._credentials[credential_id])

    # ==================== QUERIES ====================

    def get(self, credential_id: str) -> Optional[VerifiableCredential]:
        return self._credentials.get(credential_id)

    def list(self) -> List[VerifiableCredential]:
        return list(self._credentials.values())

    def __contains__(self, credential_id: str) -> bool:
        return credential_id in self._credentials

    def __iter__(self) -> Iterator[VerifiableCredential]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._credentials)
