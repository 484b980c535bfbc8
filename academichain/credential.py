"""
Verifiable Credential data model
================================

Academic degree credentials following the W3C Verifiable Credentials
Data Model 1.1.

Reference: https://www.w3.org/TR/vc-data-model/
"""

import json
import uuid
from dataclasses import InitVar, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

DEFAULT_CONTEXT = ["https://www.w3.org/2018/credentials/v1"]

VERIFIABLE_CREDENTIAL = "VerifiableCredential"
UNIVERSITY_DEGREE_CREDENTIAL = "UniversityDegreeCredential"
DERIVED_DEGREE_CREDENTIAL = "DerivedUniversityDegreeCredential"

SOURCE_CREDENTIAL_EVIDENCE = "SourceCredential"
TRANSCRIPT_EVIDENCE = "Transcript"

PROOF_TYPE = "EcdsaSecp256k1Signature2019"
PROOF_PURPOSE = "assertionMethod"

MODEL_MEMBERS = frozenset({
    "@context", "id", "type", "issuer", "issuanceDate",
    "credentialSubject", "evidence", "proof",
})


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def new_credential_id() -> str:
    return f"urn:uuid:{uuid.uuid4()}"


@dataclass(frozen=True)
class DegreeClaim:
    """Degree record; every field is optional so it can be partially disclosed"""
    type: Optional[str] = None
    name: Optional[str] = None
    major: Optional[str] = None

    FIELDS = ("type", "name", "major")

    def to_dict(self) -> Dict[str, str]:
        return {
            key: getattr(self, key)
            for key in self.FIELDS
            if getattr(self, key) is not None
        }

    def present_fields(self) -> List[str]:
        return list(self.to_dict().keys())

    def is_empty(self) -> bool:
        return not self.to_dict()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DegreeClaim":
        data = data or {}
        return cls(
            type=data.get("type"),
            name=data.get("name"),
            major=data.get("major"),
        )


@dataclass
class Evidence:
    """Evidence entry; cid points at externally stored material"""
    id: str
    type: List[str]
    name: str
    cid: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "type": list(self.type),
            "name": self.name,
        }
        if self.cid:
            result["cid"] = self.cid
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        return cls(
            id=data["id"],
            type=list(data.get("type", [])),
            name=data.get("name", ""),
            cid=data.get("cid"),
        )


@dataclass
class CredentialProof:
    """Proof attached to a Verifiable Credential"""
    type: str
    created: str
    proof_purpose: str
    verification_method: str
    signature: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "created": self.created,
            "proofPurpose": self.proof_purpose,
            "verificationMethod": self.verification_method,
            "signature": self.signature
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialProof":
        return cls(
            type=data.get("type", ""),
            created=data.get("created", ""),
            proof_purpose=data.get("proofPurpose", ""),
            verification_method=data.get("verificationMethod", ""),
            signature=data.get("signature", ""),
        )


def build_subject(subject_did: str, degree: DegreeClaim, issue_date: str) -> Dict[str, Any]:
    """Credential subject in authored key order: id, degree, issueDate"""
    return {
        "id": subject_did,
        "degree": degree.to_dict(),
        "issueDate": issue_date
    }


@dataclass
class VerifiableCredential:
    """
    W3C Verifiable Credential

    credential_subject, evidence and proof are kept as plain mappings so an
    imported credential serializes back exactly as it was received; the
    hash depends on the nested key order. Top-level members outside the
    model are carried in ``extra`` and are covered by the hash.

    Pass ``fill_defaults=False`` to leave a missing id or issuance date
    absent instead of generating one.
    """
    context: List[str] = field(default_factory=lambda: list(DEFAULT_CONTEXT))
    id: str = ""
    type: List[str] = field(default_factory=lambda: [VERIFIABLE_CREDENTIAL])
    issuer: str = ""
    issuance_date: Optional[str] = ""
    credential_subject: Dict[str, Any] = field(default_factory=dict)
    evidence: Optional[List[Dict[str, Any]]] = None
    proof: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    fill_defaults: InitVar[bool] = True

    def __post_init__(self, fill_defaults: bool):
        if not fill_defaults:
            return
        if not self.id:
            self.id = new_credential_id()
        if not self.issuance_date:
            self.issuance_date = utc_timestamp()

    def to_dict(self, include_proof: bool = True) -> Dict[str, Any]:
        """Convert to W3C VC JSON format"""
        vc = {
            "@context": self.context,
            "id": self.id,
            "type": self.type,
            "issuer": self.issuer
        }
        if self.issuance_date is not None:
            vc["issuanceDate"] = self.issuance_date
        vc["credentialSubject"] = self.credential_subject

        if self.evidence is not None:
            vc["evidence"] = self.evidence
        for name, value in self.extra.items():
            vc.setdefault(name, value)
        if include_proof and self.proof is not None:
            vc["proof"] = self.proof

        return vc

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def without_proof(self) -> Dict[str, Any]:
        return self.to_dict(include_proof=False)

    @property
    def degree(self) -> DegreeClaim:
        return DegreeClaim.from_dict(self.credential_subject.get("degree"))

    @property
    def subject_id(self) -> str:
        return self.credential_subject.get("id", "")

    @property
    def is_derived(self) -> bool:
        return DERIVED_DEGREE_CREDENTIAL in self.type

    def evidence_entries(self) -> List[Evidence]:
        return [Evidence.from_dict(e) for e in self.evidence or []]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifiableCredential":
        """Rebuild a received credential as-is, unknown members included"""
        return cls(
            context=data.get("@context", []),
            id=data.get("id", ""),
            type=data.get("type", []),
            issuer=data.get("issuer", ""),
            issuance_date=data.get("issuanceDate"),
            credential_subject=data.get("credentialSubject", {}),
            evidence=data.get("evidence"),
            proof=data.get("proof"),
            extra={k: v for k, v in data.items() if k not in MODEL_MEMBERS},
            fill_defaults=False,
        )
