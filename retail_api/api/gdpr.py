"""
GDPR API endpoints
Data export, erasure and consent for the authenticated user
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from retail_api.core.database import get_session
from retail_api.core.dependencies import CurrentUser, get_current_user
from retail_api.core.errors import bad_request, not_found, server_error
from retail_api.models import ConsentType, User
from retail_api.schemas.gdpr import (
    ConsentListResponse,
    ConsentRead,
    ConsentUpdate,
    DeleteRequest,
    HasConsentResponse,
)
from retail_api.services.gdpr import DELETE_CONFIRMATION, GdprService

router = APIRouter(prefix="/gdpr", tags=["gdpr"])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _load_user(session: Session, user: CurrentUser) -> User:
    record = session.get(User, user.id)
    if record is None:
        raise not_found("user_not_found")
    return record


def _consent_type(value: str) -> ConsentType:
    try:
        return ConsentType(value.strip().lower())
    except ValueError:
        raise bad_request("invalid_consent_type", f"Valid types: {', '.join(t.value for t in ConsentType)}")


@router.get("/data-export")
def export_data(
    request: Request,
    format: str = Query("json", pattern="^(json|csv)$"),
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Everything stored about the caller, as JSON or a CSV attachment"""
    service = GdprService(session)
    export = service.export_user_data(_load_user(session, user), _client_ip(request))
    if format == "csv":
        return Response(
            content=service.export_to_csv(export),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="data-export-{user.id}.csv"'},
        )
    return JSONResponse(content=export)


@router.delete("/data-delete")
def delete_data(
    request: Request,
    data: Optional[DeleteRequest] = None,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Erase the caller's account; requires the explicit confirmation phrase"""
    if data is None or data.confirmation != DELETE_CONFIRMATION:
        raise bad_request("confirmation_required", f'Send {{"confirmation": "{DELETE_CONFIRMATION}"}}')
    record = _load_user(session, user)
    try:
        summary = GdprService(session).delete_user_data(record, _client_ip(request))
    except SQLAlchemyError:
        raise server_error("data_deletion_failed")
    return {"deleted": True, **summary}


@router.get("/consents", response_model=ConsentListResponse)
def get_consents(
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    records = GdprService(session).current_consents(user.id)
    return ConsentListResponse(consents=[
        ConsentRead(consent_type=r.consent_type.value, granted=r.granted, created_at=r.created_at)
        for r in records
    ])


@router.post("/consents", response_model=ConsentRead, status_code=status.HTTP_201_CREATED)
def record_consent(
    request: Request,
    data: ConsentUpdate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    consent_type = _consent_type(data.consent_type)
    _load_user(session, user)
    record = GdprService(session).record_consent(
        user.id,
        consent_type,
        data.granted,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return ConsentRead(consent_type=record.consent_type.value, granted=record.granted, created_at=record.created_at)


@router.get("/has-consent", response_model=HasConsentResponse)
def has_consent(
    type: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    consent_type = _consent_type(type)
    return HasConsentResponse(
        consent_type=consent_type.value,
        granted=GdprService(session).has_consent(user.id, consent_type),
    )
