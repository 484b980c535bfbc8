"""
Error taxonomy for the credential engine

Every failure a caller can hit maps to its own exception type so the
portals can render distinct states (malformed vs. duplicate vs. empty
selection). Signature mismatches are deliberately absent: verification
returns a boolean.
"""


class AcademiChainError(Exception):
    """Base class for all credential engine errors"""


class IdentityLoadError(AcademiChainError):
    """Stored key material is missing or cannot be parsed"""

    def __init__(self, scope: str, reason: str):
        self.scope = scope
        self.reason = reason
        super().__init__(f"Cannot load identity for scope '{scope}': {reason}")


class EmptySelectionError(AcademiChainError):
    """A derivation was requested with no disclosable degree fields"""


class MalformedCredentialError(AcademiChainError):
    """Credential text decoded but required members are missing"""


class UndecodableCredentialError(MalformedCredentialError):
    """Credential text is neither base64-wrapped JSON nor raw JSON"""


class DuplicateCredentialError(AcademiChainError):
    """A credential with the same id is already held"""

    def __init__(self, credential_id: str):
        self.credential_id = credential_id
        super().__init__(f"Credential already present: {credential_id}")


class LedgerError(AcademiChainError):
    """The ledger collaborator could not complete a call"""


class StorageError(AcademiChainError):
    """The content store could not complete an upload"""
