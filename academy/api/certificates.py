from fastapi import APIRouter

from academy.features.certificates.service import verify_certificate
from academy.models.learning import CertificateVerification

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


@router.get("/verify/{code}", response_model=CertificateVerification)
def verify(code: str):
    """Public certificate check; no session needed."""
    return verify_certificate(code)
