"""
Credential transport encoding

A signed credential travels as compact JSON, optionally wrapped in base64
for copy/paste and QR codes. Decoding tries each strategy in order and
takes the first one that yields a JSON object.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .credential import VerifiableCredential
from .exceptions import MalformedCredentialError, UndecodableCredentialError

REQUIRED_MEMBERS = ("id", "issuer", "credentialSubject", "proof")


@dataclass
class DecodeResult:
    """Outcome of one decoding strategy"""
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data is not None


def _parse_object(text: str) -> DecodeResult:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return DecodeResult(error=f"invalid JSON ({e.msg})")
    if not isinstance(data, dict):
        return DecodeResult(error="JSON is not an object")
    return DecodeResult(data=data)


class Base64JsonDecoder:
    name = "base64"

    def decode(self, text: str) -> DecodeResult:
        # wrapped or pasted base64 carries line breaks
        compact = "".join(text.split())
        try:
            raw = base64.b64decode(compact, validate=True)
            decoded = raw.decode("utf-8")
        except (binascii.Error, ValueError) as e:
            return DecodeResult(error=f"not base64 text ({e})")
        return _parse_object(decoded)


class RawJsonDecoder:
    name = "json"

    def decode(self, text: str) -> DecodeResult:
        return _parse_object(text)


DEFAULT_DECODERS = [Base64JsonDecoder(), RawJsonDecoder()]


def encode_credential(credential: VerifiableCredential) -> str:
    """Base64 of the UTF-8 compact JSON form"""
    payload = json.dumps(credential.to_dict(), separators=(',', ':'), ensure_ascii=False)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_payload(text: str, decoders: Optional[List[Any]] = None) -> Dict[str, Any]:
    """
    Decode credential text into a JSON object

    Raises:
        UndecodableCredentialError: if no strategy succeeds
    """
    text = (text or "").strip()
    if not text:
        raise UndecodableCredentialError("No credential data provided")

    failures = []
    for decoder in decoders or DEFAULT_DECODERS:
        result = decoder.decode(text)
        if result.ok:
            return result.data
        failures.append(f"{decoder.name}: {result.error}")

    raise UndecodableCredentialError(
        "The data is not valid Base64 or JSON (" + "; ".join(failures) + ")"
    )


def validate_structure(data: Dict[str, Any]) -> None:
    """
    Check the members a held credential must carry

    Raises:
        MalformedCredentialError: naming the missing or mistyped members
    """
    missing = [member for member in REQUIRED_MEMBERS if not data.get(member)]
    if missing:
        raise MalformedCredentialError(f"Invalid VC format: missing {', '.join(missing)}")

    if not isinstance(data["credentialSubject"], dict):
        raise MalformedCredentialError("Invalid VC format: credentialSubject must be an object")
    if not isinstance(data["proof"], dict):
        raise MalformedCredentialError("Invalid VC format: proof must be an object")
    if not isinstance(data["issuer"], str) or not isinstance(data["id"], str):
        raise MalformedCredentialError("Invalid VC format: id and issuer must be strings")


def decode_credential(text: str, decoders: Optional[List[Any]] = None) -> VerifiableCredential:
    """Decode and structurally validate credential text"""
    data = decode_payload(text, decoders)
    validate_structure(data)
    return VerifiableCredential.from_dict(data)
