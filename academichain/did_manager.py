"""
DID conventions - address-derived identifiers

DID Format: did:<method>:<address>

Identifiers are a pure function of the key's Ethereum address. No DID
Document is resolved; the verification method of a proof is always the
controller fragment of the signer's DID.
"""

from enum import Enum


CONTROLLER_FRAGMENT = "controller"


class DIDMethod(Enum):
    """Supported DID methods"""
    ETHR = "ethr"  # Ethereum address DID (default)
    KEY = "key"


def did_from_address(address: str, method: str = DIDMethod.ETHR.value) -> str:
    """Build the DID string for an address"""
    if isinstance(method, DIDMethod):
        method = method.value
    return f"did:{method}:{address}"


def verification_method_for(did: str) -> str:
    """Proof verification method reference for a DID"""
    return f"{did}#{CONTROLLER_FRAGMENT}"


def address_from_did(did: str) -> str:
    """
    Extract the address part of a DID

    Raises:
        ValueError: if the string is not of the form did:<method>:<address>
    """
    parts = did.split(":", 2)
    if len(parts) != 3 or parts[0] != "did" or not parts[1] or not parts[2]:
        raise ValueError(f"Not an address DID: {did!r}")
    return parts[2]


def address_from_verification_method(verification_method: str) -> str:
    """
    Parse the signer address out of a proof's verification method

    Strips the did:<method>: prefix and the trailing #controller
    fragment (any fragment is dropped).

    Raises:
        ValueError: if the reference cannot be parsed
    """
    if not isinstance(verification_method, str):
        raise ValueError("Verification method must be a string")
    did, _, _fragment = verification_method.partition("#")
    address = address_from_did(did)
    if ":" in address:
        raise ValueError(f"Unexpected DID structure: {verification_method!r}")
    return address
