"""
Hasher / Signer

The content hash is Keccak-256 over the UTF-8 canonical form of the
credential without its proof. The signature is an Ethereum personal-message
signature over the 32 raw digest bytes, so the signer's address can be
recovered from it.
"""

from typing import Any, Dict, Mapping, Union

from eth_utils import keccak

from .canonical import canonicalize
from .credential import (
    PROOF_PURPOSE,
    PROOF_TYPE,
    CredentialProof,
    VerifiableCredential,
    utc_timestamp,
)
from .key_manager import Identity

CredentialLike = Union[VerifiableCredential, Mapping[str, Any]]


def _strip_proof(credential: CredentialLike) -> Dict[str, Any]:
    if isinstance(credential, VerifiableCredential):
        return credential.without_proof()
    return {key: value for key, value in credential.items() if key != "proof"}


def credential_digest(credential: CredentialLike) -> bytes:
    """Keccak-256 digest of the canonical credential (proof excluded)"""
    canonical = canonicalize(_strip_proof(credential))
    return keccak(canonical.encode("utf-8"))


def compute_hash(credential: CredentialLike) -> str:
    """
    Get hash of credential (without proof)

    Returns:
        0x-prefixed lowercase hex digest
    """
    return "0x" + credential_digest(credential).hex()


def sign_credential(unsigned: CredentialLike, identity: Identity) -> CredentialProof:
    """
    Sign a credential with the identity's key

    Any proof already present on the input is ignored.
    """
    digest = credential_digest(unsigned)
    signature = identity.sign(digest)

    return CredentialProof(
        type=PROOF_TYPE,
        created=utc_timestamp(),
        proof_purpose=PROOF_PURPOSE,
        verification_method=identity.verification_method,
        signature=signature
    )


def attach_proof(unsigned: VerifiableCredential, identity: Identity) -> VerifiableCredential:
    """Sign and set the proof; returns the same credential object"""
    unsigned.proof = sign_credential(unsigned, identity).to_dict()
    return unsigned
