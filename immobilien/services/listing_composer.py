"""Turn listing rows into response payloads.

Features are stored as JSON text and decoded here; images for a whole page
are fetched with a single query and attached per listing.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
import json
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from immobilien.exceptions import InternalError
from immobilien.models.property import Property
from immobilien.models.property_images import PropertyImage
from immobilien.schemas.property import PropertyImageResponse, PropertyResponse

logger = logging.getLogger(__name__)

IMAGE_ORDER = (
    PropertyImage.display_order.asc(),
    PropertyImage.is_primary.desc(),
    PropertyImage.id.asc(),
)


def encode_features(features: Optional[Iterable[str]]) -> str:
    return json.dumps(list(features or []))


def decode_features(listing: Property) -> List[str]:
    if listing.features is None or listing.features == "":
        return []
    try:
        features = json.loads(listing.features)
    except (TypeError, ValueError):
        logger.error("Malformed features JSON on property %s", listing.id)
        raise InternalError("Fehler beim Laden der Immobiliendaten")
    if not isinstance(features, list):
        logger.error("Features of property %s is not a list", listing.id)
        raise InternalError("Fehler beim Laden der Immobiliendaten")
    return features


def serialize_image(image: PropertyImage) -> dict:
    return PropertyImageResponse.model_validate(image).model_dump(mode="json")


def serialize_listing(listing: Property, **extra) -> dict:
    data = PropertyResponse.model_validate(listing).model_dump(mode="json")
    data["features"] = decode_features(listing)
    data.update(extra)
    return data


def load_images(session: Session, property_ids: Sequence[int]) -> Dict[int, list]:
    """All images of the given listings, grouped by listing id, in display order."""
    grouped: Dict[int, list] = defaultdict(list)
    if not property_ids:
        return grouped
    rows = session.execute(
        select(PropertyImage)
        .where(PropertyImage.property_id.in_(property_ids))
        .order_by(PropertyImage.property_id, *IMAGE_ORDER)
    ).scalars()
    for image in rows:
        grouped[image.property_id].append(serialize_image(image))
    return grouped


def compose_page(session: Session, rows) -> List[dict]:
    """Serialize (Property, primary_image, image_count) rows with their images."""
    rows = list(rows)
    images = load_images(session, [row[0].id for row in rows])
    listings = []
    for listing, primary_image, image_count in rows:
        attached = images.get(listing.id, [])
        if primary_image is None and attached:
            primary_image = attached[0]["image_url"]
        listings.append(
            serialize_listing(
                listing,
                images=attached,
                primary_image=primary_image,
                image_count=image_count if image_count is not None else len(attached),
            )
        )
    return listings


def pagination(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "page": offset // limit + 1,
        "pages": (total + limit - 1) // limit,
        "has_more": total > offset + limit,
    }


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def partition_by_recency(
    listings: Iterable[Property], days: int, now: Optional[datetime] = None
):
    """Split listings into (recent, archived), both newest first.

    A listing is recent when it was created at or after ``now - days``.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    threshold = now - timedelta(days=days)
    ordered = sorted(listings, key=lambda p: as_utc(p.created_at), reverse=True)
    recent = [p for p in ordered if as_utc(p.created_at) >= threshold]
    archived = [p for p in ordered if as_utc(p.created_at) < threshold]
    return recent, archived
