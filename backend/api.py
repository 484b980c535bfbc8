import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uvicorn

from academichain import (
    AcademicCredentialService,
    DegreeClaim,
    EmptySelectionError,
    IdentityLoadError,
    LedgerError,
    MalformedCredentialError,
    StorageError,
    build_service,
    decode_credential,
)
from academichain.config import settings

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("academichain.api")

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

service: Optional[AcademicCredentialService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global service
    logger.info("Starting AcademiChain credential API...")

    try:
        service = build_service(settings)
    except IdentityLoadError as e:
        # Without identities nothing can be issued or derived
        logger.error(f"Cannot proceed: {e}")
        raise

    await service.start()
    logger.info(f"University DID: {service.university.did}")
    logger.info(f"Student DID: {service.student.did}")

    yield
    logger.info("Shutting down...")
    service = None


app = FastAPI(title="AcademiChain Credential API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class DeriveRequest(BaseModel):
    credential_id: str
    fields: List[str]


def _service() -> AcademicCredentialService:
    if service is None:
        raise HTTPException(status_code=503, detail="Credential service not available")
    return service


def _decode_or_400(data: str):
    try:
        return decode_credential(data)
    except MalformedCredentialError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============================================================
# UNIVERSITY PORTAL
# ============================================================

@app.get("/api/university/info")
async def university_info():
    """University DID and signing address"""
    svc = _service()
    return {
        "did": svc.university.did,
        "address": svc.university.address
    }


@app.post("/api/credential/issue")
async def issue_credential(
    subject_did: str = Form(...),
    degree_type: str = Form(...),
    degree_name: str = Form(...),
    major: Optional[str] = Form(None),
    anchor: bool = Form(settings.ANCHOR_ON_ISSUE),
    transcript: Optional[UploadFile] = File(None)
):
    """
    Issue a signed degree credential

    Optionally uploads a transcript as evidence and anchors the
    credential hash on the ledger (mock).
    """
    svc = _service()

    content = None
    transcript_name = "transcript.pdf"
    if transcript is not None and transcript.filename:
        content = await transcript.read()
        if len(content) > MAX_FILE_SIZE:
            raise HTTPException(status_code=400, detail="File too large")
        transcript_name = transcript.filename

    degree = DegreeClaim(type=degree_type, name=degree_name, major=major or None)

    try:
        issued = await svc.issue_degree(
            subject_did=subject_did,
            degree=degree,
            transcript=content,
            transcript_name=transcript_name,
            anchor=anchor
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))

    receipt = issued["anchor"]
    return {
        "credential": issued["credential"].to_dict(),
        "credential_id": issued["credential"].id,
        "encoded": issued["encoded"],
        "hash": issued["hash"],
        "anchor": receipt.to_dict() if receipt else None
    }


@app.post("/api/credential/revoke")
async def revoke_credential(credential: str = Form(...)):
    """Revoke a credential by its hash (mock ledger)"""
    svc = _service()
    vc = _decode_or_400(credential)

    try:
        credential_hash = await svc.revoke(vc)
    except LedgerError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {"credential_id": vc.id, "hash": credential_hash, "revoked": True}


@app.post("/api/credential/hash")
async def credential_hash(credential: str = Form(...)):
    """Keccak-256 hash of the canonical credential (proof excluded)"""
    svc = _service()
    vc = _decode_or_400(credential)
    return {"credential_id": vc.id, "hash": svc.compute_hash(vc)}


# ============================================================
# EMPLOYER VERIFIER
# ============================================================

@app.post("/api/credential/verify")
async def verify_credential(credential: str = Form(...)):
    """
    Verify a credential given as encoded text or raw JSON

    Always answers 200; the status field distinguishes undecodable,
    malformed, invalid_signature, revoked and valid credentials.
    """
    svc = _service()
    result = await svc.verify_encoded(credential)
    return result.to_dict()


# ============================================================
# STUDENT WALLET
# ============================================================

@app.get("/api/wallet")
async def list_wallet():
    svc = _service()
    return {
        "did": svc.student.did,
        "credentials": [vc.to_dict() for vc in svc.wallet.list()]
    }


@app.post("/api/wallet/import")
async def import_credential(data: str = Form(...)):
    """Import a credential; a duplicate id is reported, not rejected"""
    svc = _service()
    try:
        result = svc.import_credential(data)
    except MalformedCredentialError as e:
        raise HTTPException(status_code=400, detail=f"Failed to import VC: {e}")
    return result.to_dict()


@app.get("/api/wallet/{credential_id}/export")
async def export_credential(credential_id: str):
    svc = _service()
    try:
        encoded = svc.export_credential(credential_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Credential not found")
    return {"credential_id": credential_id, "encoded": encoded}


@app.post("/api/wallet/derive")
async def derive_credential(request: DeriveRequest):
    """Create a derived credential disclosing only the selected degree fields"""
    svc = _service()
    source = svc.wallet.get(request.credential_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Credential not found")

    try:
        derived = svc.derive(source, request.fields)
    except EmptySelectionError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "credential": derived.to_dict(),
        "credential_id": derived.id,
        "hash": svc.compute_hash(derived)
    }


@app.get("/api/did/info")
async def get_did_info():
    """Get DID system information"""
    if service is None:
        return {
            "available": False,
            "message": "Credential service not initialized"
        }

    return {
        "available": True,
        "statistics": service.get_statistics()
    }


if __name__ == "__main__":
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
