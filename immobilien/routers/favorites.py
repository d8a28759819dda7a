from typing import List

from fastapi import APIRouter, Response
from sqlalchemy import select
from starlette import status

from immobilien.dependencies import CurrentUser, db_dependency
from immobilien.models.favorite import Favorite
from immobilien.schemas.favorite import FavoriteResponse
from immobilien.services.property_service import PropertyService

router = APIRouter(prefix="/favorites", tags=["favorites"])


def _find(db, user_id: int, property_id: int):
    return db.execute(
        select(Favorite).where(
            Favorite.user_id == user_id, Favorite.property_id == property_id
        )
    ).scalar_one_or_none()


@router.post(
    "/{property_id}",
    response_model=FavoriteResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_favorite(property_id: int, db: db_dependency, current_user: CurrentUser):
    PropertyService(db).get_or_404(property_id)

    # Idempotent: return existing
    existing = _find(db, current_user.id, property_id)
    if existing:
        return existing

    fav = Favorite(user_id=current_user.id, property_id=property_id)
    db.add(fav)
    db.commit()
    db.refresh(fav)
    return fav


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_favorite(property_id: int, db: db_dependency, current_user: CurrentUser):
    fav = _find(db, current_user.id, property_id)
    if fav:
        db.delete(fav)
        db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=List[FavoriteResponse])
def list_my_favorites(db: db_dependency, current_user: CurrentUser):
    return (
        db.execute(
            select(Favorite)
            .where(Favorite.user_id == current_user.id)
            .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        )
        .scalars()
        .all()
    )
