"""
Credential System Tests
=======================

Tests for the credential lifecycle: canonicalization, identities, signing,
verification, derivation, wallet import and the mocked collaborators.
"""

import asyncio
import base64
import json
import textwrap

import httpx
import pytest

from academichain.canonical import canonicalize
from academichain.codec import decode_credential, encode_credential
from academichain.credential import (
    DERIVED_DEGREE_CREDENTIAL,
    UNIVERSITY_DEGREE_CREDENTIAL,
    DegreeClaim,
    VerifiableCredential,
)
from academichain.credential_issuer import CredentialIssuer
from academichain.credential_verifier import (
    CredentialVerifier,
    VerificationStatus,
    recover_signer,
    verify_signature,
)
from academichain.derivation import DerivedCredentialBuilder, derive
from academichain.did_manager import address_from_verification_method, did_from_address
from academichain.did_service import AcademicCredentialService
from academichain.exceptions import (
    DuplicateCredentialError,
    EmptySelectionError,
    IdentityLoadError,
    LedgerError,
    MalformedCredentialError,
    StorageError,
    UndecodableCredentialError,
)
from academichain.key_manager import (
    IdentityProvider,
    IdentityScope,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from academichain.ledger import InMemoryLedger, SimulatedContractLedger
from academichain.signing import compute_hash, sign_credential
from academichain.storage import MockIPFSStore, PinningServiceStore
from academichain.wallet import CredentialWallet, ImportStatus

# Hardhat account #0 (public test key)
HARDHAT_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
HARDHAT_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

STUDENT_DID = "did:ethr:0x742d35Cc6634C0532925a3b844Bc9e7595f8c1F5"
BSC_DEGREE = DegreeClaim(
    type="Bachelor of Science",
    name="Computer Science",
    major="Software Engineering"
)


class FailingLedger(InMemoryLedger):
    async def is_revoked(self, credential_hash: str) -> bool:
        raise LedgerError("node unreachable")


def make_issuer(identities: IdentityProvider, ledger=None) -> CredentialIssuer:
    return CredentialIssuer(
        identity=identities.institution(),
        ledger=ledger or InMemoryLedger(),
        content_store=MockIPFSStore(delay_seconds=0)
    )


class TestCanonicalizer:
    """Test canonical serialization"""

    def test_top_level_keys_sorted(self):
        canonical = canonicalize({"type": ["A"], "id": "x", "@context": ["c"]})
        assert canonical == '{"@context":["c"],"id":"x","type":["A"]}'

    def test_nested_order_is_preserved(self):
        subject = {"id": "did:ethr:0x1", "degree": {"type": "BSc", "name": "CS"}, "issueDate": "d"}
        canonical = canonicalize({"credentialSubject": subject})
        assert canonical == (
            '{"credentialSubject":{"id":"did:ethr:0x1",'
            '"degree":{"type":"BSc","name":"CS"},"issueDate":"d"}}'
        )

    def test_nested_order_changes_output(self):
        a = canonicalize({"degree": {"type": "BSc", "name": "CS"}})
        b = canonicalize({"degree": {"name": "CS", "type": "BSc"}})
        assert a != b

    def test_top_level_order_does_not_change_output(self):
        a = canonicalize({"id": "1", "issuer": "i"})
        b = canonicalize({"issuer": "i", "id": "1"})
        assert a == b

    def test_non_ascii_kept_as_utf8(self):
        canonical = canonicalize({"name": "Kỹ thuật phần mềm"})
        assert "Kỹ thuật phần mềm" in canonical
        assert "\\u" not in canonical


class TestKeyManager:
    """Test identities and key persistence"""

    def setup_method(self):
        self.store = InMemoryKeyValueStore()
        self.identities = IdentityProvider(self.store)

    def test_identity_created_and_persisted(self):
        identity = self.identities.get_or_create_identity(IdentityScope.INSTITUTION)

        assert identity.address.startswith("0x")
        assert identity.did == f"did:ethr:{identity.address}"
        assert self.store.get("university_private_key") == identity.private_key

    def test_identity_cached_per_scope(self):
        first = self.identities.institution()
        second = self.identities.institution()
        student = self.identities.holder()

        assert first is second
        assert student.address != first.address
        assert self.store.get("student_private_key") is not None

    def test_identity_survives_new_provider(self):
        address = self.identities.holder().address

        reloaded = IdentityProvider(self.store).holder()
        assert reloaded.address == address

    def test_known_key_address(self):
        store = InMemoryKeyValueStore({"university_private_key": HARDHAT_KEY})
        identity = IdentityProvider(store).institution()
        assert identity.address == HARDHAT_ADDRESS

    def test_reset_reloads_from_store(self):
        first = self.identities.institution()
        self.identities.reset()
        second = self.identities.institution()

        assert first is not second
        assert first.address == second.address

    def test_corrupt_key_raises(self):
        store = InMemoryKeyValueStore({"student_private_key": "not-a-key"})
        with pytest.raises(IdentityLoadError):
            IdentityProvider(store).get_or_create_identity(IdentityScope.HOLDER)

    def test_load_without_stored_key_raises(self):
        with pytest.raises(IdentityLoadError):
            self.identities.load(IdentityScope.INSTITUTION)

    def test_json_file_store(self, tmp_path):
        path = tmp_path / "keys" / "keystore.json"
        address = IdentityProvider(JsonFileKeyValueStore(path)).institution().address

        assert path.exists()
        assert IdentityProvider(JsonFileKeyValueStore(path)).institution().address == address

    def test_unreadable_json_file_raises(self, tmp_path):
        path = tmp_path / "keystore.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(IdentityLoadError):
            IdentityProvider(JsonFileKeyValueStore(path)).institution()


class TestDIDConventions:

    def test_did_from_address(self):
        assert did_from_address(HARDHAT_ADDRESS) == f"did:ethr:{HARDHAT_ADDRESS}"
        assert did_from_address("0xabc", "key") == "did:key:0xabc"

    def test_address_from_verification_method(self):
        vm = f"did:ethr:{HARDHAT_ADDRESS}#controller"
        assert address_from_verification_method(vm) == HARDHAT_ADDRESS

    @pytest.mark.parametrize("vm", ["", "ethr:0xabc#controller", "did:ethr", None])
    def test_malformed_verification_method(self, vm):
        with pytest.raises(ValueError):
            address_from_verification_method(vm)


class TestSigning:
    """Test hashing and proof creation"""

    def setup_method(self):
        self.identities = IdentityProvider(InMemoryKeyValueStore())
        self.issuer = make_issuer(self.identities)

    def test_issue_round_trip(self):
        credential = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        assert verify_signature(credential) is True

    def test_proof_fields(self):
        credential = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        proof = credential.proof
        university = self.identities.institution()

        assert proof["type"] == "EcdsaSecp256k1Signature2019"
        assert proof["proofPurpose"] == "assertionMethod"
        assert proof["verificationMethod"] == f"did:ethr:{university.address}#controller"
        assert proof["signature"].startswith("0x")
        assert len(proof["signature"]) == 2 + 130

    def test_hash_format(self):
        credential = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        credential_hash = compute_hash(credential)

        assert credential_hash.startswith("0x")
        assert len(credential_hash) == 66
        assert credential_hash == credential_hash.lower()

    def test_hash_is_deterministic_and_ignores_proof(self):
        credential = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        as_dict = json.loads(json.dumps(credential.to_dict()))

        assert compute_hash(credential) == compute_hash(as_dict)
        as_dict["proof"]["signature"] = "0x00"
        assert compute_hash(as_dict) == compute_hash(credential)
        del as_dict["proof"]
        assert compute_hash(as_dict) == compute_hash(credential)

    def test_sign_credential_recovers_signer(self):
        unsigned = VerifiableCredential(issuer="did:ethr:x", credential_subject={"id": STUDENT_DID})
        identity = self.identities.holder()
        proof = sign_credential(unsigned, identity)

        assert recover_signer(unsigned, proof.signature) == identity.address

    def test_issue_structure(self):
        credential = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        vc = credential.to_dict()

        assert vc["@context"] == ["https://www.w3.org/2018/credentials/v1"]
        assert vc["id"].startswith("urn:uuid:")
        assert vc["type"] == ["VerifiableCredential", UNIVERSITY_DEGREE_CREDENTIAL]
        assert vc["issuer"] == self.identities.institution().did
        assert vc["credentialSubject"]["id"] == STUDENT_DID
        assert vc["credentialSubject"]["degree"] == BSC_DEGREE.to_dict()
        assert vc["credentialSubject"]["issueDate"] == vc["issuanceDate"]
        assert "evidence" not in vc

    def test_issue_without_major(self):
        credential = self.issuer.issue(STUDENT_DID, DegreeClaim(type="Master of Arts", name="History"))
        assert credential.credential_subject["degree"] == {"type": "Master of Arts", "name": "History"}
        assert verify_signature(credential)

    def test_issue_requires_type_and_name(self):
        with pytest.raises(ValueError):
            self.issuer.issue(STUDENT_DID, DegreeClaim(name="History"))

    def test_ids_are_unique(self):
        first = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        second = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        assert first.id != second.id


class TestVerifier:
    """Test signature verification and the verification pipeline"""

    def setup_method(self):
        self.identities = IdentityProvider(InMemoryKeyValueStore())
        self.ledger = InMemoryLedger()
        self.issuer = make_issuer(self.identities, self.ledger)
        self.verifier = CredentialVerifier(self.ledger)
        self.credential = self.issuer.issue(STUDENT_DID, BSC_DEGREE)

    def _tampered(self, mutate):
        data = json.loads(json.dumps(self.credential.to_dict()))
        mutate(data)
        return VerifiableCredential.from_dict(data)

    def test_tampered_degree_name(self):
        def mutate(data):
            data["credentialSubject"]["degree"]["name"] = "Medicine"
        assert verify_signature(self._tampered(mutate)) is False

    def test_tampered_issuance_date(self):
        def mutate(data):
            data["issuanceDate"] = "2000-01-01T00:00:00.000Z"
        assert verify_signature(self._tampered(mutate)) is False

    def test_altered_verification_method(self):
        def mutate(data):
            data["proof"]["verificationMethod"] = f"did:ethr:{HARDHAT_ADDRESS}#controller"
        assert verify_signature(self._tampered(mutate)) is False

    def test_lowercase_verification_method_still_matches(self):
        def mutate(data):
            data["proof"]["verificationMethod"] = data["proof"]["verificationMethod"].lower()
        assert verify_signature(self._tampered(mutate)) is True

    def test_missing_signature(self):
        def mutate(data):
            del data["proof"]["signature"]
        assert verify_signature(self._tampered(mutate)) is False

        self.credential.proof = None
        assert verify_signature(self.credential) is False

    def test_garbage_signature(self):
        def mutate(data):
            data["proof"]["signature"] = "0xdeadbeef"
        assert verify_signature(self._tampered(mutate)) is False

    def test_pipeline_valid(self):
        result = asyncio.run(self.verifier.verify(self.credential))

        assert result.status == VerificationStatus.VALID
        assert result.is_valid
        assert result.signature_valid
        assert result.revoked is False
        assert result.checks["issuer_binding"] is True
        assert result.to_dict()["signatureValid"] is True

    def test_pipeline_revoked(self):
        asyncio.run(self.issuer.revoke(self.credential))
        result = asyncio.run(self.verifier.verify(self.credential))

        assert result.status == VerificationStatus.REVOKED
        assert result.signature_valid
        assert result.revoked is True

    def test_pipeline_invalid_signature_skips_revocation(self):
        tampered = self._tampered(lambda d: d["credentialSubject"].update({"id": "did:ethr:0x0"}))
        result = asyncio.run(CredentialVerifier(FailingLedger()).verify(tampered))

        assert result.status == VerificationStatus.INVALID_SIGNATURE
        assert result.revoked is None

    def test_pipeline_revocation_unavailable(self):
        result = asyncio.run(CredentialVerifier(FailingLedger()).verify(self.credential))

        assert result.status == VerificationStatus.REVOCATION_UNAVAILABLE
        assert result.signature_valid
        assert not result.is_valid

    def test_pipeline_undecodable_and_malformed(self):
        undecodable = asyncio.run(self.verifier.verify_encoded("%%% not a credential %%%"))
        assert undecodable.status == VerificationStatus.UNDECODABLE

        data = self.credential.to_dict()
        del data["issuer"]
        malformed = asyncio.run(self.verifier.verify_encoded(json.dumps(data)))
        assert malformed.status == VerificationStatus.MALFORMED

    def test_pipeline_encoded_credential(self):
        result = asyncio.run(self.verifier.verify_encoded(encode_credential(self.credential)))
        assert result.status == VerificationStatus.VALID
        assert result.credential_hash == compute_hash(self.credential)

    def test_added_top_level_member(self):
        data = self.credential.to_dict()
        data["expirationDate"] = "2099-01-01T00:00:00.000Z"

        assert verify_signature(VerifiableCredential.from_dict(data)) is False
        result = asyncio.run(self.verifier.verify_encoded(json.dumps(data)))
        assert result.status == VerificationStatus.INVALID_SIGNATURE
        assert result.credential_hash != compute_hash(self.credential)

    def test_issuer_binding_with_non_mapping_proof(self):
        self.credential.proof = "not a proof"
        result = asyncio.run(self.verifier.verify(self.credential))

        assert result.status == VerificationStatus.INVALID_SIGNATURE
        assert result.checks["issuer_binding"] is False


class TestDerivation:
    """Test selective-disclosure derived credentials"""

    def setup_method(self):
        self.identities = IdentityProvider(InMemoryKeyValueStore())
        self.issuer = make_issuer(self.identities)
        self.source = self.issuer.issue(STUDENT_DID, BSC_DEGREE)
        self.student = self.identities.holder()

    def test_derive_subset(self):
        derived = derive(self.source, {"type", "name"}, self.student)
        degree = derived.credential_subject["degree"]

        assert degree == {"type": "Bachelor of Science", "name": "Computer Science"}
        assert "major" not in degree
        assert derived.evidence[0]["id"] == self.source.id
        assert derived.evidence[0]["type"] == ["SourceCredential"]

    def test_derived_credential_shape(self):
        derived = derive(self.source, ["major"], self.student)

        assert derived.id != self.source.id
        assert derived.type == ["VerifiableCredential", DERIVED_DEGREE_CREDENTIAL]
        assert derived.issuer == self.student.did
        assert derived.subject_id == self.source.subject_id
        assert derived.credential_subject["issueDate"] == derived.issuance_date
        assert derived.context == self.source.context
        assert derived.is_derived

    def test_derived_credential_verifies_against_holder(self):
        derived = derive(self.source, ["name"], self.student)

        assert verify_signature(derived)
        assert address_from_verification_method(derived.proof["verificationMethod"]) == self.student.address

    def test_empty_selection_rejected(self):
        with pytest.raises(EmptySelectionError):
            derive(self.source, set(), self.student)

    def test_selection_of_absent_field_rejected(self):
        source = self.issuer.issue(STUDENT_DID, DegreeClaim(type="BA", name="History"))
        with pytest.raises(EmptySelectionError):
            derive(source, {"major"}, self.student)

    def test_unknown_fields_ignored(self):
        builder = DerivedCredentialBuilder(self.source).select(["name", "gpa"])
        unsigned = builder.build(self.student.did)

        assert unsigned.proof is None
        assert unsigned.credential_subject["degree"] == {"name": "Computer Science"}

    def test_multiple_derivations_are_independent(self):
        first = derive(self.source, ["type"], self.student)
        second = derive(self.source, ["type"], self.student)

        assert first.id != second.id
        assert first.evidence[0]["id"] == second.evidence[0]["id"] == self.source.id


class TestWallet:
    """Test transport encoding and the student wallet"""

    def setup_method(self):
        self.store = InMemoryKeyValueStore()
        self.identities = IdentityProvider(self.store)
        self.issuer = make_issuer(self.identities)
        self.wallet = CredentialWallet(self.store)
        self.credential = self.issuer.issue(STUDENT_DID, BSC_DEGREE)

    def test_base64_and_json_import_same_credential(self):
        encoded = encode_credential(self.credential)
        raw = json.dumps(self.credential.to_dict())

        from_b64 = decode_credential(encoded)
        from_json = decode_credential(raw)

        assert from_b64.to_dict() == from_json.to_dict() == self.credential.to_dict()
        assert compute_hash(from_b64) == compute_hash(from_json)

    def test_base64_is_utf8_json(self):
        encoded = encode_credential(self.credential)
        payload = json.loads(base64.b64decode(encoded).decode("utf-8"))
        assert payload["id"] == self.credential.id

    def test_import_then_duplicate(self):
        first = self.wallet.import_credential(encode_credential(self.credential))
        second = self.wallet.import_credential(json.dumps(self.credential.to_dict()))

        assert first.status == ImportStatus.IMPORTED
        assert second.status == ImportStatus.DUPLICATE
        assert len(self.wallet) == 1

    def test_add_duplicate_raises(self):
        self.wallet.add(self.credential)
        with pytest.raises(DuplicateCredentialError):
            self.wallet.add(self.credential)

    def test_undecodable_import(self):
        with pytest.raises(UndecodableCredentialError):
            self.wallet.import_credential("this is neither base64 nor json")
        assert len(self.wallet) == 0

    @pytest.mark.parametrize("member", ["proof", "credentialSubject", "issuer", "id"])
    def test_missing_member_rejected(self, member):
        data = self.credential.to_dict()
        del data[member]

        with pytest.raises(MalformedCredentialError):
            self.wallet.import_credential(json.dumps(data))
        assert len(self.wallet) == 0

    def test_wallet_persists(self):
        self.wallet.import_credential(encode_credential(self.credential))

        reopened = CredentialWallet(self.store)
        assert self.credential.id in reopened
        assert verify_signature(reopened.get(self.credential.id))

    def test_export(self):
        self.wallet.add(self.credential)
        assert decode_credential(self.wallet.export(self.credential.id)).id == self.credential.id

        with pytest.raises(KeyError):
            self.wallet.export("urn:uuid:missing")

    def test_wrapped_base64_import(self):
        wrapped = "\n".join(textwrap.wrap(encode_credential(self.credential), 76))

        result = self.wallet.import_credential(wrapped)
        assert result.status == ImportStatus.IMPORTED
        assert compute_hash(self.wallet.get(self.credential.id)) == compute_hash(self.credential)

    def test_import_keeps_unknown_members(self):
        data = self.credential.to_dict()
        data["expirationDate"] = "2099-01-01T00:00:00.000Z"
        self.wallet.import_credential(json.dumps(data))

        held = self.wallet.get(self.credential.id)
        assert held.to_dict() == data
        assert CredentialWallet(self.store).get(self.credential.id).to_dict() == data

    def test_import_does_not_invent_issuance_date(self):
        data = self.credential.to_dict()
        del data["issuanceDate"]
        self.wallet.import_credential(json.dumps(data))

        held = self.wallet.get(self.credential.id)
        assert held.issuance_date is None
        assert "issuanceDate" not in held.to_dict()
        assert decode_credential(self.wallet.export(self.credential.id)).to_dict() == data


class TestCollaborators:
    """Test ledger and content store stand-ins"""

    def test_mock_ipfs_cid(self):
        store = MockIPFSStore(delay_seconds=0)
        result = asyncio.run(store.upload(b"%PDF-1.4", filename="transcript.pdf"))

        assert result.cid.startswith("bafybeig")
        assert len(result.cid) == len("bafybeig") + 46
        assert store.get(result.cid) == b"%PDF-1.4"

    def test_pinning_service_upload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/pinning/pinJSONToIPFS"
            assert request.headers["Authorization"] == "Bearer secret"
            return httpx.Response(200, json={"IpfsHash": "bafkreiexample"})

        store = PinningServiceStore(
            "https://pin.example",
            token="secret",
            transport=httpx.MockTransport(handler)
        )
        result = asyncio.run(store.upload({"hello": "world"}))
        assert result.cid == "bafkreiexample"

    def test_pinning_service_failure(self):
        store = PinningServiceStore(
            "https://pin.example",
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        with pytest.raises(StorageError):
            asyncio.run(store.upload(b"data", filename="t.pdf"))

    def test_ledger_registration_and_anchor(self):
        ledger = SimulatedContractLedger(delay_seconds=0)
        identities = IdentityProvider(InMemoryKeyValueStore())
        issuer = make_issuer(identities, ledger)

        assert asyncio.run(issuer.ensure_registered()) is True
        assert asyncio.run(issuer.ensure_registered()) is False
        assert asyncio.run(ledger.get_controller(issuer.issuer_did)) == identities.institution().address

        credential = issuer.issue(STUDENT_DID, BSC_DEGREE)
        receipt = asyncio.run(issuer.anchor(credential))

        assert receipt.success
        assert receipt.tx_hash.startswith("0x") and len(receipt.tx_hash) == 66
        assert ledger.get_anchor(compute_hash(credential)).tx_hash == receipt.tx_hash

    def test_upload_transcript_evidence(self):
        issuer = make_issuer(IdentityProvider(InMemoryKeyValueStore()))
        evidence = asyncio.run(issuer.upload_transcript(b"grades", "transcript.pdf"))
        credential = issuer.issue(STUDENT_DID, BSC_DEGREE, [evidence])

        entry = credential.evidence[0]
        assert entry["id"] == f"ipfs://{evidence.cid}"
        assert entry["type"] == ["Transcript"]
        assert entry["name"] == "transcript.pdf"
        assert entry["cid"] == evidence.cid
        assert verify_signature(credential)


class TestCredentialService:
    """Test the integration service"""

    def setup_method(self):
        store = InMemoryKeyValueStore()
        self.service = AcademicCredentialService(
            identities=IdentityProvider(store),
            ledger=InMemoryLedger(),
            content_store=MockIPFSStore(delay_seconds=0),
            wallet=CredentialWallet(store)
        )

    def test_full_flow(self):
        asyncio.run(self.service.start())

        # 1. University issues with transcript and anchoring
        issued = asyncio.run(self.service.issue_degree(
            self.service.student.did, BSC_DEGREE, transcript=b"grades"
        ))
        assert issued["anchor"].success
        assert issued["credential"].evidence[0]["cid"]

        # 2. Student imports, derives
        result = self.service.import_credential(issued["encoded"])
        assert result.status == ImportStatus.IMPORTED

        derived = self.service.derive(result.credential, ["type", "name"])
        assert len(self.service.wallet) == 2

        # 3. Employer verifies both
        for credential in (issued["credential"], derived):
            exported = self.service.export_credential(credential.id)
            verification = asyncio.run(self.service.verify_encoded(exported))
            assert verification.status == VerificationStatus.VALID

        # 4. University revokes the original
        asyncio.run(self.service.revoke(issued["credential"]))
        verification = asyncio.run(self.service.verify(issued["credential"]))
        assert verification.status == VerificationStatus.REVOKED

    def test_statistics(self):
        self.service.issue(STUDENT_DID, BSC_DEGREE)
        stats = self.service.get_statistics()

        assert stats["university"]["did"].startswith("did:ethr:0x")
        assert stats["credentials"]["total_issued"] == 1
        assert stats["credentials"]["held"] == 0
        assert "ledger" in stats
