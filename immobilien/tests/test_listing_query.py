from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError

from immobilien.models.property import OfferType, PropertyStatus, PropertyType
from immobilien.services.property_service import PropertyService

LIST = "/api/properties"


def _seed(make_user, make_property):
    owner = make_user()
    now = datetime.now(timezone.utc)
    return [
        make_property(
            owner=owner,
            title="Wohnung Frankfurt Nord",
            city="Frankfurt am Main",
            price=1200,
            size=80,
            rooms=3,
            created_at=now - timedelta(days=5),
        ),
        make_property(
            owner=owner,
            title="Haus in Karben",
            type=PropertyType.HOUSE,
            offer_type=OfferType.SALE,
            city="Karben",
            price=450000,
            size=160,
            rooms=5,
            featured=True,
            created_at=now - timedelta(days=1),
        ),
        make_property(
            owner=owner,
            title="Kleine Wohnung Usingen",
            city="Usingen",
            price=650,
            size=45,
            rooms=2,
            status=PropertyStatus.RENTED,
            created_at=now - timedelta(days=10),
        ),
        make_property(
            owner=owner,
            title="Gewerbefläche Bad Vilbel",
            type=PropertyType.COMMERCIAL,
            city="Bad Vilbel",
            price=2500,
            size=200,
            rooms=4,
            status=PropertyStatus.RESERVED,
            created_at=now - timedelta(days=3),
        ),
        make_property(
            owner=owner,
            title="Dachgeschoss Frankfurt",
            city="Frankfurt am Main",
            price=980,
            size=60,
            rooms=2,
            created_at=now - timedelta(days=7),
        ),
    ]


def test_unfiltered_search_returns_everything(client, make_user, make_property):
    _seed(make_user, make_property)
    r = client.get(LIST)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["pagination"]["total"] == 5
    assert len(data["properties"]) == 5


def test_filtered_count_never_exceeds_unfiltered(client, make_user, make_property):
    _seed(make_user, make_property)
    total = client.get(LIST).json()["pagination"]["total"]
    for params in (
        {"type": "apartment"},
        {"city": "frankfurt"},
        {"min_price": 900, "max_price": 1500},
        {"rooms": 2},
        {"featured": "true"},
    ):
        filtered = client.get(LIST, params=params).json()
        assert filtered["pagination"]["total"] <= total
        assert len(filtered["properties"]) == filtered["pagination"]["total"]


def test_status_counts_sum_to_total(client, make_user, make_property):
    _seed(make_user, make_property)
    total = client.get(LIST).json()["pagination"]["total"]
    per_status = sum(
        client.get(LIST, params={"status": s.value}).json()["pagination"]["total"]
        for s in PropertyStatus
    )
    assert per_status == total


def test_filters_combine(client, make_user, make_property):
    _seed(make_user, make_property)
    r = client.get(
        LIST,
        params={"city": "FRANKFURT", "type": "apartment", "max_price": 1000},
    )
    titles = [p["title"] for p in r.json()["properties"]]
    assert titles == ["Dachgeschoss Frankfurt"]


def test_range_filters_are_inclusive(client, make_user, make_property):
    _seed(make_user, make_property)
    r = client.get(LIST, params={"min_size": 45, "max_size": 60})
    titles = sorted(p["title"] for p in r.json()["properties"])
    assert titles == ["Dachgeschoss Frankfurt", "Kleine Wohnung Usingen"]


def test_city_filter_treats_wildcards_literally(client, make_user, make_property):
    _seed(make_user, make_property)
    r = client.get(LIST, params={"city": "%"})
    assert r.json()["pagination"]["total"] == 0


def test_pagination_window(client, make_user, make_property):
    _seed(make_user, make_property)
    first = client.get(LIST, params={"limit": 2, "offset": 0}).json()
    assert len(first["properties"]) == 2
    assert first["pagination"]["has_more"] is True
    assert first["pagination"]["pages"] == 3

    last = client.get(LIST, params={"limit": 2, "offset": 4}).json()
    assert len(last["properties"]) == 1
    assert last["pagination"]["has_more"] is False
    assert last["pagination"]["page"] == 3

    seen = {p["id"] for offset in (0, 2, 4) for p in client.get(
        LIST, params={"limit": 2, "offset": offset}
    ).json()["properties"]}
    assert len(seen) == 5


def test_sort_by_price_ascending(client, make_user, make_property):
    _seed(make_user, make_property)
    prices = [
        p["price"]
        for p in client.get(LIST, params={"sort": "price_asc"}).json()["properties"]
    ]
    assert prices == sorted(prices)


def test_default_sort_is_newest_first(client, make_user, make_property):
    _seed(make_user, make_property)
    titles = [p["title"] for p in client.get(LIST).json()["properties"]]
    assert titles[0] == "Haus in Karben"
    assert titles[-1] == "Kleine Wohnung Usingen"


def test_invalid_query_parameters_are_rejected(client):
    for params in (
        {"limit": 0},
        {"limit": 101},
        {"offset": -1},
        {"min_price": "abc"},
        {"min_price": "nan"},
        {"rooms": 0},
        {"sort": "cheapest"},
        {"type": "castle"},
        {"min_price": 500, "max_price": 100},
    ):
        r = client.get(LIST, params=params)
        assert r.status_code == 400, params
        assert r.json()["code"] == "validation_error"


def test_features_are_decoded(client, make_user, make_property):
    make_property(owner=make_user(), features=["Balkon", "Garage", "Einbauküche"])
    listing = client.get(LIST).json()["properties"][0]
    assert listing["features"] == ["Balkon", "Garage", "Einbauküche"]


def test_malformed_features_fail_the_response(client, make_property):
    make_property(features_raw="{not json")
    r = client.get(LIST)
    assert r.status_code == 500
    assert r.json()["code"] == "internal_error"


def test_images_are_attached_in_display_order(client, make_user, make_property):
    listing = make_property(
        owner=make_user(),
        images=[
            {"image_url": "https://cdn.test/c.jpg", "display_order": 2},
            {"image_url": "https://cdn.test/b.jpg", "display_order": 1},
            {"image_url": "https://cdn.test/a2.jpg", "display_order": 0},
            {"image_url": "https://cdn.test/a1.jpg", "display_order": 0, "is_primary": True},
        ],
    )
    data = client.get(LIST).json()["properties"][0]
    assert data["id"] == listing.id
    assert [i["image_url"] for i in data["images"]] == [
        "https://cdn.test/a1.jpg",
        "https://cdn.test/a2.jpg",
        "https://cdn.test/b.jpg",
        "https://cdn.test/c.jpg",
    ]
    assert data["primary_image"] == "https://cdn.test/a1.jpg"
    assert data["image_count"] == 4


def test_primary_image_falls_back_to_first_image(client, make_property):
    make_property(
        images=[
            {"image_url": "https://cdn.test/2.jpg", "display_order": 1},
            {"image_url": "https://cdn.test/1.jpg", "display_order": 0},
        ]
    )
    data = client.get(LIST).json()["properties"][0]
    assert data["primary_image"] == "https://cdn.test/1.jpg"


def test_listing_without_images(client, make_property):
    make_property()
    data = client.get(LIST).json()["properties"][0]
    assert data["images"] == []
    assert data["primary_image"] is None
    assert data["image_count"] == 0


def test_database_outage_is_reported_as_unavailable(client, monkeypatch):
    def _fail(self, filters):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(PropertyService, "search", _fail)
    r = client.get(LIST)
    assert r.status_code == 503
    assert r.json()["code"] == "service_unavailable"
