from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from immobilien.exceptions import NotFoundError
from immobilien.models.inquiry import Inquiry, InquiryStatus
from immobilien.models.property import Property
from immobilien.schemas.inquiry import (
    InquiryCreate,
    InquiryFilterParams,
    InquiryResponse,
    InquiryUpdate,
)


def property_summary(listing: Optional[Property]) -> Optional[dict]:
    if listing is None:
        return None
    return {
        "id": listing.id,
        "title": listing.title,
        "type": listing.type.value,
        "price": listing.price,
        "location": listing.location,
    }


def serialize_inquiry(inquiry: Inquiry) -> dict:
    data = InquiryResponse.model_validate(inquiry).model_dump(mode="json")
    data["property"] = property_summary(inquiry.property)
    return data


class InquiryService:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        data: InquiryCreate,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[Inquiry, Optional[Property]]:
        listing = None
        if data.property_id is not None:
            listing = self.db.get(Property, data.property_id)
            if listing is None:
                raise NotFoundError("Immobilie nicht gefunden")
        inquiry = Inquiry(
            **data.model_dump(),
            status=InquiryStatus.NEW,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(inquiry)
        self.db.commit()
        self.db.refresh(inquiry)
        return inquiry, listing

    def get_or_404(self, inquiry_id: int) -> Inquiry:
        inquiry = self.db.get(Inquiry, inquiry_id)
        if inquiry is None:
            raise NotFoundError("Anfrage nicht gefunden")
        return inquiry

    def list_inquiries(self, filters: InquiryFilterParams) -> Tuple[List[Inquiry], int]:
        conditions = []
        if filters.status is not None:
            conditions.append(Inquiry.status == filters.status)
        if filters.property_id is not None:
            conditions.append(Inquiry.property_id == filters.property_id)
        total = self.db.execute(
            select(func.count(Inquiry.id)).where(*conditions)
        ).scalar_one()
        rows = (
            self.db.execute(
                select(Inquiry)
                .where(*conditions)
                .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
                .offset((filters.page - 1) * filters.limit)
                .limit(filters.limit)
            )
            .scalars()
            .all()
        )
        return rows, total

    def update(self, inquiry_id: int, data: InquiryUpdate) -> Inquiry:
        inquiry = self.get_or_404(inquiry_id)
        inquiry.status = data.status
        if data.notes is not None:
            inquiry.notes = data.notes
        self.db.commit()
        self.db.refresh(inquiry)
        return inquiry

    def stats(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        by_status = dict(
            self.db.execute(
                select(Inquiry.status, func.count(Inquiry.id)).group_by(Inquiry.status)
            ).all()
        )

        def created_since(since: datetime) -> int:
            return self.db.execute(
                select(func.count(Inquiry.id)).where(Inquiry.created_at >= since)
            ).scalar_one()

        return {
            "total": sum(by_status.values()),
            "by_status": {s.value: by_status.get(s, 0) for s in InquiryStatus},
            "today": created_since(start_of_day),
            "this_week": created_since(now - timedelta(days=7)),
            "this_month": created_since(now - timedelta(days=30)),
        }
