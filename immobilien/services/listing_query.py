"""Filtered listing search.

``ListingQuery`` collects one predicate per supplied filter and renders the
page statement and the count statement from that same list, so the total
always describes exactly the rows being paged.
"""

from typing import List

from sqlalchemy import and_, func, select
from sqlalchemy.sql.elements import ColumnElement

from immobilien.models.property import Property
from immobilien.models.property_images import PropertyImage
from immobilien.schemas.property import ListingSort, PropertyFilterParams

SORT_ORDER = {
    ListingSort.PRICE_ASC: (Property.price.asc(), Property.id.asc()),
    ListingSort.PRICE_DESC: (Property.price.desc(), Property.id.desc()),
    ListingSort.SIZE_ASC: (Property.size.asc(), Property.id.asc()),
    ListingSort.SIZE_DESC: (Property.size.desc(), Property.id.desc()),
    ListingSort.NEWEST: (Property.created_at.desc(), Property.id.desc()),
    ListingSort.OLDEST: (Property.created_at.asc(), Property.id.asc()),
}


def primary_image_column():
    return (
        select(PropertyImage.image_url)
        .where(
            PropertyImage.property_id == Property.id,
            PropertyImage.is_primary.is_(True),
        )
        .order_by(PropertyImage.display_order.asc(), PropertyImage.id.asc())
        .limit(1)
        .correlate(Property)
        .scalar_subquery()
        .label("primary_image")
    )


def image_count_column():
    return (
        select(func.count(PropertyImage.id))
        .where(PropertyImage.property_id == Property.id)
        .correlate(Property)
        .scalar_subquery()
        .label("image_count")
    )


class ListingQuery:
    def __init__(self, filters: PropertyFilterParams):
        self.filters = filters
        self.conditions: List[ColumnElement] = []
        self._build()

    def _build(self) -> None:
        f = self.filters
        if f.type is not None:
            self.conditions.append(Property.type == f.type)
        if f.offer_type is not None:
            self.conditions.append(Property.offer_type == f.offer_type)
        if f.status is not None:
            self.conditions.append(Property.status == f.status)
        if f.city:
            self.conditions.append(Property.city.icontains(f.city, autoescape=True))
        if f.min_price is not None:
            self.conditions.append(Property.price >= f.min_price)
        if f.max_price is not None:
            self.conditions.append(Property.price <= f.max_price)
        if f.min_size is not None:
            self.conditions.append(Property.size >= f.min_size)
        if f.max_size is not None:
            self.conditions.append(Property.size <= f.max_size)
        if f.rooms is not None:
            self.conditions.append(Property.rooms == f.rooms)
        if f.featured is not None:
            self.conditions.append(Property.featured.is_(f.featured))

    def _filtered(self, statement):
        if self.conditions:
            statement = statement.where(and_(*self.conditions))
        return statement

    def count_statement(self):
        return self._filtered(select(func.count(Property.id)))

    def page_statement(self):
        statement = select(Property, primary_image_column(), image_count_column())
        return (
            self._filtered(statement)
            .order_by(*SORT_ORDER[self.filters.sort])
            .offset(self.filters.offset)
            .limit(self.filters.limit)
        )
