from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from starlette import status
import logging

from immobilien.dependencies import db_dependency, require_permission
from immobilien.models.user import User
from immobilien.policy import Permission
from immobilien.schemas.inquiry import (
    GeneralContact,
    InquiryCreate,
    InquiryFilterParams,
    InquiryResponse,
    InquiryUpdate,
)
from immobilien.services import notifications
from immobilien.services.inquiry_service import (
    InquiryService,
    property_summary,
    serialize_inquiry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["contact"])

staff_dependency = Annotated[
    User, Depends(require_permission(Permission.MANAGE_INQUIRIES))
]


def _client_ip(request: Request):
    return request.headers.get("x-forwarded-for") or (
        request.client.host if request.client else None
    )


@router.post("/inquiry", status_code=status.HTTP_201_CREATED)
def submit_inquiry(
    db: db_dependency,
    body: InquiryCreate,
    request: Request,
    background_tasks: BackgroundTasks,
):
    """Store a property inquiry; the notification mails go out after the response."""
    inquiry, listing = InquiryService(db).create(
        body,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    snapshot = InquiryResponse.model_validate(inquiry)
    background_tasks.add_task(
        notifications.notify_inquiry_received, snapshot, property_summary(listing)
    )
    logger.info("Inquiry %s received for property %s", inquiry.id, inquiry.property_id)
    return {
        "message": "Anfrage erfolgreich gesendet",
        "inquiry": snapshot.model_dump(mode="json"),
    }


@router.post("/general", status_code=status.HTTP_200_OK)
def general_contact(body: GeneralContact, background_tasks: BackgroundTasks):
    background_tasks.add_task(notifications.notify_general_contact, body)
    return {"message": "Nachricht erfolgreich gesendet"}


@router.get("/inquiries", status_code=status.HTTP_200_OK)
def list_inquiries(
    db: db_dependency,
    staff: staff_dependency,
    filters: Annotated[InquiryFilterParams, Query()],
):
    rows, total = InquiryService(db).list_inquiries(filters)
    return {
        "inquiries": [serialize_inquiry(row) for row in rows],
        "pagination": {
            "total": total,
            "page": filters.page,
            "limit": filters.limit,
            "pages": (total + filters.limit - 1) // filters.limit,
        },
    }


@router.get("/stats", status_code=status.HTTP_200_OK)
def inquiry_stats(db: db_dependency, staff: staff_dependency):
    return {"stats": InquiryService(db).stats()}


@router.get("/inquiries/{inquiry_id}", status_code=status.HTTP_200_OK)
def get_inquiry(inquiry_id: int, db: db_dependency, staff: staff_dependency):
    return {"inquiry": serialize_inquiry(InquiryService(db).get_or_404(inquiry_id))}


@router.put("/inquiries/{inquiry_id}", status_code=status.HTTP_200_OK)
def update_inquiry(
    inquiry_id: int,
    db: db_dependency,
    staff: staff_dependency,
    body: InquiryUpdate,
):
    inquiry = InquiryService(db).update(inquiry_id, body)
    logger.info("Inquiry %s set to %s by %s", inquiry_id, inquiry.status.value, staff.id)
    return {
        "message": "Anfrage erfolgreich aktualisiert",
        "inquiry": serialize_inquiry(inquiry),
    }
