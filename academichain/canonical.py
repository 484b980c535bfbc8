import json
from typing import Any, Mapping


def canonicalize(credential_without_proof: Mapping[str, Any]) -> str:
    """
    Canonical JSON encoding of a credential (minus proof) for hashing.

    - top-level keys sorted so every producer emits the same order
    - nested objects (credentialSubject, degree, evidence entries) keep
      their authored key order; they are not re-sorted
    - separators (',', ':') remove whitespace variations
    - ensure_ascii=False keeps non-ASCII text as UTF-8, not \\u escapes

    NOTE: only the top level is order-independent. Two producers that
    author a nested object with different key orders get different hashes.
    Deep-sorting would change the hash of every credential already issued,
    so the nested order stays significant.
    """
    ordered = {key: credential_without_proof[key] for key in sorted(credential_without_proof)}
    return json.dumps(
        ordered,
        separators=(',', ':'),
        ensure_ascii=False
    )
