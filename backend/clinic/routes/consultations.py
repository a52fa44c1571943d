# clinic/routes/consultations.py
from fastapi import APIRouter, Depends, Request, Response

from clinic.config import get_cipher
from clinic.consultations import ConsultationService
from clinic.crypto import FieldCipher
from clinic.models import (
    ConsultationOut,
    CreateConsultationIn,
    PatientConsultationHistoryOut,
    UpdateConsultationIn,
)
from clinic.security import AuthPrincipal, roles, HEALTH_PROFESSIONAL, SECRETARY

router = APIRouter(prefix="/consultations", tags=["consultations"])

professional_only = roles(HEALTH_PROFESSIONAL)
staff = roles(HEALTH_PROFESSIONAL, SECRETARY)


def get_service(request: Request, cipher: FieldCipher = Depends(get_cipher)) -> ConsultationService:
    return ConsultationService(request.app.state.pool, cipher)


@router.post("", response_model=ConsultationOut, status_code=201)
def create_consultation(
    payload: CreateConsultationIn,
    principal: AuthPrincipal = Depends(professional_only),
    service: ConsultationService = Depends(get_service),
):
    return service.create(payload, principal.id)


@router.get("", response_model=list[ConsultationOut])
def list_consultations(
    principal: AuthPrincipal = Depends(staff),
    service: ConsultationService = Depends(get_service),
):
    return service.find_all(principal.id, principal.role)


@router.get("/patient/{patient_id}", response_model=list[ConsultationOut])
def list_patient_consultations(
    patient_id: int,
    principal: AuthPrincipal = Depends(staff),
    service: ConsultationService = Depends(get_service),
):
    return service.find_by_patient(patient_id, principal.id)


@router.get("/patient/{patient_id}/history", response_model=PatientConsultationHistoryOut)
def patient_history(
    patient_id: int,
    principal: AuthPrincipal = Depends(staff),
    service: ConsultationService = Depends(get_service),
):
    return service.patient_history(patient_id, principal.id)


@router.get("/{consultation_id}", response_model=ConsultationOut)
def get_consultation(
    consultation_id: int,
    principal: AuthPrincipal = Depends(staff),
    service: ConsultationService = Depends(get_service),
):
    return service.find_one(consultation_id, principal.id, principal.role)


@router.patch("/{consultation_id}", response_model=ConsultationOut)
def update_consultation(
    consultation_id: int,
    payload: UpdateConsultationIn,
    principal: AuthPrincipal = Depends(professional_only),
    service: ConsultationService = Depends(get_service),
):
    return service.update(consultation_id, payload, principal.id)


@router.patch("/{consultation_id}/conclude", response_model=ConsultationOut)
def conclude_consultation(
    consultation_id: int,
    principal: AuthPrincipal = Depends(professional_only),
    service: ConsultationService = Depends(get_service),
):
    return service.conclude(consultation_id, principal.id)


@router.delete("/{consultation_id}", status_code=204)
def delete_consultation(
    consultation_id: int,
    principal: AuthPrincipal = Depends(professional_only),
    service: ConsultationService = Depends(get_service),
):
    service.remove(consultation_id, principal.id)
    return Response(status_code=204)
