"""
Credential Service
==================

Single entry point used by the university, student and verifier portals:
- Credential issuance (with optional transcript upload and anchoring)
- Student wallet import/export and derived credentials
- Credential verification
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .codec import encode_credential
from .config import AcademiChainSettings
from .credential import DegreeClaim, Evidence, VerifiableCredential
from .credential_issuer import CredentialIssuer
from .credential_verifier import CredentialVerifier, VerificationResult
from .derivation import derive
from .key_manager import Identity, IdentityProvider, JsonFileKeyValueStore, KeyValueStore
from .ledger import AnchorReceipt, Ledger, SimulatedContractLedger
from .signing import CredentialLike, compute_hash
from .storage import ContentStore, MockIPFSStore, PinningServiceStore
from .wallet import CredentialWallet, ImportResult

logger = logging.getLogger(__name__)


class AcademicCredentialService:
    """
    Main service class for credential operations

    Collaborators are injected; build_service() wires the configured ones.
    """

    def __init__(
        self,
        identities: IdentityProvider,
        ledger: Ledger,
        content_store: ContentStore,
        wallet: CredentialWallet,
        context: Optional[List[str]] = None
    ):
        self.identities = identities
        self.ledger = ledger
        self.content_store = content_store
        self.wallet = wallet

        self.credential_issuer = CredentialIssuer(
            identity=identities.institution(),
            ledger=ledger,
            content_store=content_store,
            context=context
        )
        self.credential_verifier = CredentialVerifier(ledger)

    @property
    def university(self) -> Identity:
        return self.identities.institution()

    @property
    def student(self) -> Identity:
        return self.identities.holder()

    async def start(self) -> None:
        """Register the university DID on the ledger if needed"""
        if await self.credential_issuer.ensure_registered():
            logger.info(f"University DID registered on-chain (mock): {self.university.did}")

    # ==================== ISSUANCE ====================

    def issue(
        self,
        subject_did: str,
        degree: DegreeClaim,
        evidence: Optional[List[Evidence]] = None
    ) -> VerifiableCredential:
        return self.credential_issuer.issue(subject_did, degree, evidence)

    async def issue_degree(
        self,
        subject_did: str,
        degree: DegreeClaim,
        transcript: Optional[bytes] = None,
        transcript_name: str = "transcript.pdf",
        anchor: bool = True
    ) -> Dict[str, Any]:
        """
        Full university flow: upload transcript, issue, optionally anchor

        Returns:
            Dict with credential, encoded text, hash and anchor receipt
        """
        evidence = None
        if transcript is not None:
            evidence = [await self.credential_issuer.upload_transcript(transcript, transcript_name)]

        credential = self.issue(subject_did, degree, evidence)

        receipt: Optional[AnchorReceipt] = None
        if anchor:
            receipt = await self.credential_issuer.anchor(credential)

        return {
            "credential": credential,
            "encoded": encode_credential(credential),
            "hash": compute_hash(credential),
            "anchor": receipt
        }

    async def revoke(self, credential: VerifiableCredential) -> str:
        return await self.credential_issuer.revoke(credential)

    # ==================== VERIFICATION ====================

    async def verify(self, credential: VerifiableCredential) -> VerificationResult:
        return await self.credential_verifier.verify(credential)

    async def verify_encoded(self, text: str) -> VerificationResult:
        return await self.credential_verifier.verify_encoded(text)

    def compute_hash(self, credential: CredentialLike) -> str:
        return compute_hash(credential)

    # ==================== WALLET ====================

    def import_credential(self, data: str) -> ImportResult:
        return self.wallet.import_credential(data)

    def export_credential(self, credential_id: str) -> str:
        return self.wallet.export(credential_id)

    def derive(self, credential: VerifiableCredential, fields: Iterable[str]) -> VerifiableCredential:
        """Derive a credential signed by the student and add it to the wallet"""
        derived = derive(credential, fields, self.student)
        self.wallet.add(derived)
        logger.info(f"Derived credential {derived.id} from {credential.id}")
        return derived

    # ==================== STATISTICS ====================

    def get_statistics(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "university": {
                "did": self.university.did,
                "address": self.university.address
            },
            "student": {
                "did": self.student.did,
                "address": self.student.address
            },
            "credentials": {
                **self.credential_issuer.get_statistics(),
                "held": len(self.wallet)
            }
        }
        if hasattr(self.ledger, "get_statistics"):
            stats["ledger"] = self.ledger.get_statistics()
        return stats


def build_content_store(config: AcademiChainSettings) -> ContentStore:
    if config.PINNING_SERVICE_URL:
        return PinningServiceStore(
            config.PINNING_SERVICE_URL,
            token=config.PINNING_SERVICE_TOKEN,
            timeout=config.PINNING_TIMEOUT_SECONDS
        )
    return MockIPFSStore(delay_seconds=config.STORAGE_DELAY_SECONDS)


def build_service(
    config: AcademiChainSettings,
    store: Optional[KeyValueStore] = None
) -> AcademicCredentialService:
    """Wire the service from configuration"""
    store = store or JsonFileKeyValueStore(config.KEY_STORE_PATH)
    identities = IdentityProvider(store, did_method=config.DID_METHOD)

    return AcademicCredentialService(
        identities=identities,
        ledger=SimulatedContractLedger(delay_seconds=config.LEDGER_DELAY_SECONDS),
        content_store=build_content_store(config),
        wallet=CredentialWallet(store, storage_key=config.WALLET_STORAGE_KEY),
        context=config.CREDENTIAL_CONTEXT
    )
