from datetime import datetime, timezone
from typing import List, Optional, Tuple
import logging

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from immobilien.database import Database
from immobilien.exceptions import NotFoundError, ValidationError
from immobilien.models.favorite import Favorite
from immobilien.models.property import Property, PropertyStatus
from immobilien.models.property_images import PropertyImage
from immobilien.models.user import User
from immobilien.policy import Permission, authorize
from immobilien.schemas.property import (
    PropertyCreate,
    PropertyFilterParams,
    PropertyUpdate,
)
from immobilien.services.listing_composer import (
    IMAGE_ORDER,
    compose_page,
    encode_features,
    partition_by_recency,
    serialize_image,
    serialize_listing,
)
from immobilien.services.listing_query import ListingQuery

logger = logging.getLogger(__name__)

NOT_FOUND = "Immobilie nicht gefunden"


class PropertyService:
    def __init__(self, db: Session):
        self.db = db

    def get_or_404(self, property_id: int) -> Property:
        listing = self.db.get(Property, property_id)
        if listing is None:
            raise NotFoundError(NOT_FOUND)
        return listing

    def search(self, filters: PropertyFilterParams) -> Tuple[List[dict], int]:
        query = ListingQuery(filters)
        total = self.db.execute(query.count_statement()).scalar_one()
        rows = self.db.execute(query.page_statement()).all()
        return compose_page(self.db, rows), total

    def get_listing(self, property_id: int, viewer: Optional[User] = None) -> dict:
        listing = self.get_or_404(property_id)
        images = self.db.execute(
            select(PropertyImage)
            .where(PropertyImage.property_id == property_id)
            .order_by(*IMAGE_ORDER)
        ).scalars()
        extra = {
            "images": [serialize_image(image) for image in images],
            "created_by_username": listing.owner.username if listing.owner else None,
            "created_by_name": listing.owner.full_name if listing.owner else None,
        }
        if viewer is not None:
            extra["is_favorited"] = (
                self.db.execute(
                    select(Favorite.id).where(
                        Favorite.user_id == viewer.id,
                        Favorite.property_id == property_id,
                    )
                ).first()
                is not None
            )
        return serialize_listing(listing, **extra)

    def create(self, data: PropertyCreate, owner: User) -> dict:
        """Insert the listing and its images in one transaction."""
        values = data.model_dump(exclude={"images", "features"})
        listing = Property(
            **values,
            features=encode_features(data.features),
            user_id=owner.id,
            published_at=datetime.now(timezone.utc),
        )
        has_primary = any(image.is_primary for image in data.images)
        for index, image in enumerate(data.images):
            listing.images.append(
                PropertyImage(
                    image_url=image.image_url,
                    thumbnail_url=image.thumbnail_url,
                    cloudinary_id=image.cloudinary_id,
                    title=image.title,
                    is_primary=image.is_primary if has_primary else index == 0,
                    display_order=index,
                )
            )
        try:
            self.db.add(listing)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(listing)
        logger.info("Property %s created by user %s", listing.id, owner.id)
        return self.get_listing(listing.id)

    def update(self, property_id: int, data: PropertyUpdate, actor: User) -> dict:
        listing = self.get_or_404(property_id)
        authorize(actor, Permission.UPDATE_PROPERTIES, listing)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("Keine gültigen Felder zum Aktualisieren")
        if "features" in changes:
            changes["features"] = encode_features(changes["features"])
        for key, value in changes.items():
            setattr(listing, key, value)

        self.db.commit()
        self.db.refresh(listing)
        return self.get_listing(listing.id)

    def delete(self, property_id: int, actor: User) -> None:
        listing = self.get_or_404(property_id)
        authorize(actor, Permission.DELETE_PROPERTIES, listing)
        self.db.delete(listing)
        self.db.commit()
        logger.info("Property %s deleted by user %s", property_id, actor.id)

    def similar(self, property_id: int, limit: int = 4) -> List[dict]:
        """Available listings of the same type and offer, near in city or price."""
        ref = self.get_or_404(property_id)
        near_price = Property.price.between(ref.price * 0.8, ref.price * 1.2)
        if ref.city is not None:
            closeness = or_(Property.city == ref.city, near_price)
            city_rank = case((Property.city == ref.city, 0), else_=1)
        else:
            closeness = near_price
            city_rank = case((Property.city.is_(None), 0), else_=1)
        statement = (
            select(Property)
            .where(
                Property.id != ref.id,
                Property.status == PropertyStatus.AVAILABLE,
                Property.type == ref.type,
                Property.offer_type == ref.offer_type,
                closeness,
            )
            .order_by(city_rank, func.abs(Property.price - ref.price), Property.id)
            .limit(limit)
        )
        listings = self.db.execute(statement).scalars().all()
        rows = [(listing, None, None) for listing in listings]
        return compose_page(self.db, rows)

    def categorize(self, days: int, now: Optional[datetime] = None) -> dict:
        listings = (
            self.db.execute(
                select(Property).where(Property.status == PropertyStatus.AVAILABLE)
            )
            .scalars()
            .all()
        )
        recent, archived = partition_by_recency(listings, days, now)
        return {
            "recent": compose_page(self.db, [(p, None, None) for p in recent]),
            "archived": compose_page(self.db, [(p, None, None) for p in archived]),
            "total": len(listings),
            "threshold_days": days,
        }


def record_listing_view(database: Database, property_id: int) -> None:
    """Increment the view counter; runs after the response has been sent."""
    try:
        database.execute(
            update(Property)
            .where(Property.id == property_id)
            .values(views=Property.views + 1)
        )
    except SQLAlchemyError:
        logger.warning(
            "Could not record view for property %s", property_id, exc_info=True
        )
