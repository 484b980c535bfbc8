"""
Verifiable Credentials Issuer
=============================

Issues university degree credentials signed by the institution identity,
per the W3C Verifiable Credentials Data Model 1.1.

Reference: https://www.w3.org/TR/vc-data-model/
"""

import logging
from typing import Dict, List, Optional

from .credential import (
    DEFAULT_CONTEXT,
    TRANSCRIPT_EVIDENCE,
    UNIVERSITY_DEGREE_CREDENTIAL,
    VERIFIABLE_CREDENTIAL,
    DegreeClaim,
    Evidence,
    VerifiableCredential,
    build_subject,
    utc_timestamp,
)
from .key_manager import Identity
from .ledger import AnchorReceipt, Ledger
from .exceptions import LedgerError
from .signing import attach_proof, compute_hash
from .storage import ContentStore

logger = logging.getLogger(__name__)


class CredentialIssuer:
    """
    Issues degree credentials for the university

    Features:
    - Issue signed degree credentials
    - Upload transcripts as evidence
    - Anchor credential hashes on the ledger
    - Revoke credentials
    """

    def __init__(
        self,
        identity: Identity,
        ledger: Ledger,
        content_store: ContentStore,
        context: Optional[List[str]] = None
    ):
        self.identity = identity
        self.ledger = ledger
        self.content_store = content_store
        self.context = list(context or DEFAULT_CONTEXT)
        self._issued_credentials: Dict[str, VerifiableCredential] = {}

    @property
    def issuer_did(self) -> str:
        return self.identity.did

    # ==================== CREDENTIAL ISSUANCE ====================

    def issue(
        self,
        subject_did: str,
        degree: DegreeClaim,
        evidence: Optional[List[Evidence]] = None
    ) -> VerifiableCredential:
        """
        Issue a signed degree credential

        Args:
            subject_did: DID of the student
            degree: degree type and name are required, major is optional
            evidence: optional evidence entries (e.g. an uploaded transcript)

        Returns:
            Signed VerifiableCredential
        """
        if not subject_did:
            raise ValueError("Subject DID is required")
        if not degree.type or not degree.name:
            raise ValueError("Degree type and name are required")

        issuance_date = utc_timestamp()
        vc = VerifiableCredential(
            context=list(self.context),
            type=[VERIFIABLE_CREDENTIAL, UNIVERSITY_DEGREE_CREDENTIAL],
            issuer=self.issuer_did,
            issuance_date=issuance_date,
            credential_subject=build_subject(subject_did, degree, issuance_date),
            evidence=[e.to_dict() for e in evidence] if evidence else None
        )

        signed_vc = attach_proof(vc, self.identity)
        self._issued_credentials[signed_vc.id] = signed_vc

        logger.info(f"Issued {signed_vc.id} to {subject_did}")
        return signed_vc

    async def upload_transcript(self, content: bytes, filename: str) -> Evidence:
        """Upload a transcript and describe it as evidence"""
        result = await self.content_store.upload(content, filename=filename)
        return Evidence(
            id=f"ipfs://{result.cid}",
            type=[TRANSCRIPT_EVIDENCE],
            name=filename,
            cid=result.cid
        )

    # ==================== LEDGER ====================

    async def ensure_registered(self) -> bool:
        """
        Register the issuer DID on the ledger if no controller is recorded

        Returns:
            True if a registration was made
        """
        existing = await self.ledger.get_controller(self.issuer_did)
        if existing:
            return False
        await self.ledger.register_identity(self.issuer_did, self.identity.address)
        return True

    async def anchor(self, credential: VerifiableCredential) -> AnchorReceipt:
        """Anchor the credential hash; ledger failures yield success=False"""
        credential_hash = compute_hash(credential)
        try:
            return await self.ledger.anchor_credential(credential_hash, self.identity.address)
        except LedgerError as e:
            logger.error(f"Failed to anchor credential hash {credential_hash}: {e}")
            return AnchorReceipt(success=False)

    async def revoke(self, credential: VerifiableCredential) -> str:
        """
        Revoke a credential by its hash

        Returns:
            The revoked credential hash
        """
        credential_hash = compute_hash(credential)
        await self.ledger.revoke(credential_hash)
        return credential_hash

    # ==================== UTILITIES ====================

    def get_credential(self, credential_id: str) -> Optional[VerifiableCredential]:
        """Get credential by ID"""
        return self._issued_credentials.get(credential_id)

    def list_credentials(self, subject_did: Optional[str] = None) -> List[VerifiableCredential]:
        """List issued credentials, optionally filtered by subject"""
        credentials = list(self._issued_credentials.values())

        if subject_did:
            credentials = [
                vc for vc in credentials
                if vc.subject_id == subject_did
            ]

        return credentials

    def get_statistics(self) -> Dict[str, int]:
        return {"total_issued": len(self._issued_credentials)}
