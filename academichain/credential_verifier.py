"""
Verifiable Credentials Verifier
================================

Checks degree credentials in two independent stages:

1. Signature - recompute the canonical hash, recover the signer address
   from the proof signature and compare it with the address named in
   proof.verificationMethod
2. Revocation - ask the ledger whether the credential hash was revoked,
   only once the signature is known to be valid

Signature checking never raises; every failure is a False result with a
logged diagnostic.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from .codec import decode_credential
from .credential import VerifiableCredential, utc_timestamp
from .did_manager import address_from_did, address_from_verification_method
from .exceptions import LedgerError, MalformedCredentialError, UndecodableCredentialError
from .ledger import Ledger
from .signing import CredentialLike, compute_hash, credential_digest

logger = logging.getLogger(__name__)


class VerificationStatus(Enum):
    """Credential verification status"""
    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"
    REVOKED = "revoked"
    MALFORMED = "malformed"
    UNDECODABLE = "undecodable"
    REVOCATION_UNAVAILABLE = "revocation_unavailable"


@dataclass
class VerificationResult:
    """Result of credential verification"""
    status: VerificationStatus
    credential_id: str = ""
    issuer: str = ""
    subject: str = ""
    signature_valid: bool = False
    revoked: Optional[bool] = None
    credential_hash: str = ""
    checks: Dict[str, bool] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    verified_at: str = field(default_factory=utc_timestamp)

    @property
    def is_valid(self) -> bool:
        return self.status == VerificationStatus.VALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "isValid": self.is_valid,
            "signatureValid": self.signature_valid,
            "revoked": self.revoked,
            "credentialId": self.credential_id,
            "credentialHash": self.credential_hash,
            "issuer": self.issuer,
            "subject": self.subject,
            "checks": self.checks,
            "errors": self.errors,
            "verifiedAt": self.verified_at
        }


def _proof_of(credential: CredentialLike) -> Optional[Dict[str, Any]]:
    if isinstance(credential, VerifiableCredential):
        return credential.proof
    return credential.get("proof")


def recover_signer(credential: CredentialLike, signature: str) -> str:
    """Recover the address that produced signature over the credential hash"""
    message = encode_defunct(primitive=credential_digest(credential))
    return Account.recover_message(message, signature=signature)


def verify_signature(credential: CredentialLike) -> bool:
    """
    Verify the signature of a credential

    Returns:
        True if the address recovered from the signature matches the
        address in proof.verificationMethod (case-insensitive)
    """
    try:
        proof = _proof_of(credential)
        if not proof or not proof.get("signature"):
            logger.warning("Credential has no proof or signature.")
            return False

        recovered = recover_signer(credential, proof["signature"])
        claimed = address_from_verification_method(proof.get("verificationMethod"))

        if recovered.lower() != claimed.lower():
            logger.warning(
                f"Signature mismatch: recovered {recovered}, verification method names {claimed}"
            )
            return False
        return True

    except Exception as e:
        logger.warning(f"Error during signature verification: {e}")
        return False


def issuer_matches_signer(credential: VerifiableCredential) -> bool:
    """Whether the issuer DID names the same address as the proof"""
    proof = credential.proof
    if not isinstance(proof, dict):
        return False
    try:
        issuer_address = address_from_did(credential.issuer)
        signer_address = address_from_verification_method(proof.get("verificationMethod"))
    except (ValueError, AttributeError):
        return False
    return issuer_address.lower() == signer_address.lower()


class CredentialVerifier:
    """
    Verifies degree credentials against signature and revocation state

    The ledger is injected; its failures are reported as
    REVOCATION_UNAVAILABLE rather than raised.
    """

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def verify(self, credential: VerifiableCredential) -> VerificationResult:
        checks = {
            "signature": False,
            "issuer_binding": False,
            "revocation": False
        }
        credential_hash = compute_hash(credential)

        # 1. Signature
        signature_valid = verify_signature(credential)
        checks["signature"] = signature_valid
        checks["issuer_binding"] = issuer_matches_signer(credential)

        if not signature_valid:
            return self._create_result(
                VerificationStatus.INVALID_SIGNATURE,
                credential,
                credential_hash,
                checks,
                ["Signature verification failed"]
            )

        # 2. Revocation
        try:
            revoked = await self.ledger.is_revoked(credential_hash)
        except LedgerError as e:
            logger.warning(f"Revocation lookup failed for {credential.id}: {e}")
            return self._create_result(
                VerificationStatus.REVOCATION_UNAVAILABLE,
                credential,
                credential_hash,
                checks,
                [f"Revocation status unavailable: {e}"],
                signature_valid=True
            )

        checks["revocation"] = not revoked
        if revoked:
            result = self._create_result(
                VerificationStatus.REVOKED,
                credential,
                credential_hash,
                checks,
                ["Credential has been revoked by the issuer"],
                signature_valid=True
            )
            result.revoked = True
            return result

        result = self._create_result(
            VerificationStatus.VALID,
            credential,
            credential_hash,
            checks,
            [],
            signature_valid=True
        )
        result.revoked = False
        return result

    async def verify_encoded(self, text: str) -> VerificationResult:
        """Verify a credential given as base64 text or raw JSON"""
        try:
            credential = decode_credential(text)
        except UndecodableCredentialError as e:
            return VerificationResult(status=VerificationStatus.UNDECODABLE, errors=[str(e)])
        except MalformedCredentialError as e:
            return VerificationResult(status=VerificationStatus.MALFORMED, errors=[str(e)])

        return await self.verify(credential)

    def _create_result(
        self,
        status: VerificationStatus,
        credential: VerifiableCredential,
        credential_hash: str,
        checks: Dict[str, bool],
        errors: List[str],
        signature_valid: bool = False
    ) -> VerificationResult:
        return VerificationResult(
            status=status,
            credential_id=credential.id,
            issuer=credential.issuer,
            subject=credential.subject_id,
            signature_valid=signature_valid,
            credential_hash=credential_hash,
            checks=checks,
            errors=errors
        )
