from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from starlette import status

from immobilien.config import settings
from immobilien.dependencies import (
    OptionalUser,
    CurrentUser,
    database_dependency,
    db_dependency,
    require_permission,
)
from immobilien.models.user import User
from immobilien.policy import Permission
from immobilien.schemas.property import (
    PropertyCreate,
    PropertyFilterParams,
    PropertyUpdate,
)
from immobilien.services.listing_composer import pagination
from immobilien.services.property_service import PropertyService, record_listing_view

router = APIRouter(prefix="/properties", tags=["properties"])

creator_dependency = Annotated[
    User, Depends(require_permission(Permission.CREATE_PROPERTIES))
]


@router.get("", status_code=status.HTTP_200_OK)
def list_properties(
    db: db_dependency, filters: Annotated[PropertyFilterParams, Query()]
):
    """Filtered, sorted and paginated listing search."""
    listings, total = PropertyService(db).search(filters)
    return {
        "properties": listings,
        "pagination": pagination(total, filters.limit, filters.offset),
    }


@router.get("/categorized", status_code=status.HTTP_200_OK)
def categorized_properties(
    db: db_dependency,
    days: int = Query(settings.RECENT_LISTING_DAYS, ge=1, le=365),
):
    """Available listings split into recent and archived by creation date."""
    return PropertyService(db).categorize(days)


@router.get("/{property_id}", status_code=status.HTTP_200_OK)
def get_property(
    property_id: int,
    db: db_dependency,
    database: database_dependency,
    viewer: OptionalUser,
    background_tasks: BackgroundTasks,
):
    listing = PropertyService(db).get_listing(property_id, viewer)
    background_tasks.add_task(record_listing_view, database, property_id)
    return {"property": listing}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_property(
    db: db_dependency, current_user: creator_dependency, body: PropertyCreate
):
    listing = PropertyService(db).create(body, current_user)
    return {"message": "Immobilie erfolgreich erstellt", "property": listing}


@router.put("/{property_id}", status_code=status.HTTP_200_OK)
def update_property(
    property_id: int,
    db: db_dependency,
    current_user: CurrentUser,
    body: PropertyUpdate,
):
    listing = PropertyService(db).update(property_id, body, current_user)
    return {"message": "Immobilie erfolgreich aktualisiert", "property": listing}


@router.delete("/{property_id}", status_code=status.HTTP_200_OK)
def delete_property(property_id: int, db: db_dependency, current_user: CurrentUser):
    PropertyService(db).delete(property_id, current_user)
    return {"message": "Immobilie erfolgreich gelöscht"}


@router.get("/{property_id}/similar", status_code=status.HTTP_200_OK)
def similar_properties(
    property_id: int,
    db: db_dependency,
    limit: int = Query(4, ge=1, le=20),
):
    return {"similar": PropertyService(db).similar(property_id, limit)}
