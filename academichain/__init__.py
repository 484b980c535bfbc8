"""
AcademiChain - Verifiable academic degree credentials
=====================================================

Issue, hold, derive and verify W3C Verifiable Credentials signed with
secp256k1 keys bound to address-derived DIDs (did:ethr:<address>).

Components:
- canonicalize: Deterministic serialization of a credential minus proof
- IdentityProvider: Persistent university / student keypairs
- compute_hash, sign_credential: Keccak-256 content hash and proof
- verify_signature, CredentialVerifier: Signer recovery and revocation check
- derive: Selective-disclosure derived credentials
- CredentialWallet: Student credential store
- Ledger, ContentStore: Mocked blockchain and IPFS collaborators
- AcademicCredentialService: Integration service

Standards:
- W3C DID Core 1.0: https://www.w3.org/TR/did-core/
- W3C Verifiable Credentials: https://www.w3.org/TR/vc-data-model/
"""

from .canonical import canonicalize
from .codec import decode_credential, encode_credential
from .credential import CredentialProof, DegreeClaim, Evidence, VerifiableCredential
from .credential_issuer import CredentialIssuer
from .credential_verifier import (
    CredentialVerifier,
    VerificationResult,
    VerificationStatus,
    verify_signature,
)
from .derivation import DerivedCredentialBuilder, derive
from .did_service import AcademicCredentialService, build_service
from .exceptions import (
    AcademiChainError,
    DuplicateCredentialError,
    EmptySelectionError,
    IdentityLoadError,
    LedgerError,
    MalformedCredentialError,
    StorageError,
    UndecodableCredentialError,
)
from .key_manager import (
    Identity,
    IdentityProvider,
    IdentityScope,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
)
from .ledger import AnchorReceipt, InMemoryLedger, Ledger, SimulatedContractLedger
from .signing import compute_hash, sign_credential
from .storage import ContentStore, MockIPFSStore, PinningServiceStore
from .wallet import CredentialWallet, ImportResult, ImportStatus

__version__ = "1.0.0"
__all__ = [
    # Engine
    "canonicalize",
    "compute_hash",
    "sign_credential",
    "verify_signature",
    "derive",
    "DerivedCredentialBuilder",

    # Data model
    "VerifiableCredential",
    "CredentialProof",
    "DegreeClaim",
    "Evidence",

    # Identity
    "Identity",
    "IdentityProvider",
    "IdentityScope",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",

    # Issuance / verification
    "CredentialIssuer",
    "CredentialVerifier",
    "VerificationResult",
    "VerificationStatus",

    # Transport and wallet
    "encode_credential",
    "decode_credential",
    "CredentialWallet",
    "ImportResult",
    "ImportStatus",

    # Collaborators
    "Ledger",
    "InMemoryLedger",
    "SimulatedContractLedger",
    "AnchorReceipt",
    "ContentStore",
    "MockIPFSStore",
    "PinningServiceStore",

    # Errors
    "AcademiChainError",
    "IdentityLoadError",
    "EmptySelectionError",
    "MalformedCredentialError",
    "UndecodableCredentialError",
    "DuplicateCredentialError",
    "LedgerError",
    "StorageError",

    # Service
    "AcademicCredentialService",
    "build_service"
]
