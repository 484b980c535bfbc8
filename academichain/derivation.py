"""
Derived credentials - selective disclosure by re-issuance

The holder picks a subset of the degree fields of a credential they hold
and signs a new, smaller credential with their own key. The new
credential names the holder as issuer and links back to the source
credential through an evidence entry; its trust rests on the holder's
signature, not the university's.
"""

from typing import Iterable, List, Optional

from .credential import (
    DERIVED_DEGREE_CREDENTIAL,
    SOURCE_CREDENTIAL_EVIDENCE,
    VERIFIABLE_CREDENTIAL,
    DegreeClaim,
    Evidence,
    VerifiableCredential,
    build_subject,
    new_credential_id,
    utc_timestamp,
)
from .exceptions import EmptySelectionError
from .key_manager import Identity
from .signing import attach_proof

DERIVABLE_FIELDS = DegreeClaim.FIELDS
SOURCE_EVIDENCE_NAME = "Original University Degree Credential"


class DerivedCredentialBuilder:
    """
    Builds the unsigned derived credential for a source credential

    Selection is restricted to derivable fields that are present on the
    source degree; anything else is ignored.
    """

    def __init__(self, source: VerifiableCredential):
        self.source = source
        self._selected: List[str] = []

    @property
    def available_fields(self) -> List[str]:
        return self.source.degree.present_fields()

    def select(self, fields: Iterable[str]) -> "DerivedCredentialBuilder":
        wanted = set(fields)
        self._selected = [f for f in self.available_fields if f in wanted]
        return self

    def disclosed_degree(self) -> DegreeClaim:
        source_degree = self.source.degree
        return DegreeClaim(**{f: getattr(source_degree, f) for f in self._selected})

    def build(self, issuer_did: str, issuance_date: Optional[str] = None) -> VerifiableCredential:
        """
        Raises:
            EmptySelectionError: if no present degree field was selected
        """
        degree = self.disclosed_degree()
        if degree.is_empty():
            raise EmptySelectionError("You must select at least one field to include.")

        issuance_date = issuance_date or utc_timestamp()
        evidence = Evidence(
            id=self.source.id,
            type=[SOURCE_CREDENTIAL_EVIDENCE],
            name=SOURCE_EVIDENCE_NAME
        )

        return VerifiableCredential(
            context=list(self.source.context),
            id=new_credential_id(),
            type=[VERIFIABLE_CREDENTIAL, DERIVED_DEGREE_CREDENTIAL],
            issuer=issuer_did,
            issuance_date=issuance_date,
            credential_subject=build_subject(self.source.subject_id, degree, issuance_date),
            evidence=[evidence.to_dict()]
        )


def derive(
    source: VerifiableCredential,
    included_fields: Iterable[str],
    signer: Identity
) -> VerifiableCredential:
    """
    Create a signed derived credential disclosing only included_fields

    Raises:
        EmptySelectionError: nothing to disclose; no signature is produced
    """
    unsigned = DerivedCredentialBuilder(source).select(included_fields).build(signer.did)
    return attach_proof(unsigned, signer)
