from datetime import datetime, timedelta, timezone

from sqlalchemy import event, func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from immobilien.models.favorite import Favorite
from immobilien.models.property import (
    OfferType,
    Property,
    PropertyStatus,
    PropertyType,
)
from immobilien.models.property_images import PropertyImage
from immobilien.models.user import UserRole


def _property_payload(**overrides):
    payload = {
        "title": "Moderne Wohnung in Karben",
        "type": "apartment",
        "offer_type": "rent",
        "price": 1150,
        "size": 82.5,
        "rooms": 3,
        "location": "Karben, Hessen",
        "city": "Karben",
        "zip_code": "61184",
        "description": "Moderne 3-Zimmer-Wohnung mit Balkon und Tiefgaragenstellplatz.",
        "features": ["Balkon", "Tiefgarage"],
        "images": [
            {"image_url": "https://cdn.test/front.jpg"},
            {"image_url": "https://cdn.test/kitchen.jpg"},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_property(client, make_user, auth_headers):
    agent = make_user()
    r = client.post(
        "/api/properties", json=_property_payload(), headers=auth_headers(agent)
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["message"] == "Immobilie erfolgreich erstellt"
    listing = data["property"]
    assert listing["features"] == ["Balkon", "Tiefgarage"]
    assert listing["user_id"] == agent.id
    assert listing["country"] == "Deutschland"
    assert listing["bathrooms"] == 1
    assert listing["published_at"] is not None
    assert [i["image_url"] for i in listing["images"]] == [
        "https://cdn.test/front.jpg",
        "https://cdn.test/kitchen.jpg",
    ]
    assert [i["is_primary"] for i in listing["images"]] == [True, False]


def test_create_property_keeps_explicit_primary(client, make_user, auth_headers):
    payload = _property_payload(
        images=[
            {"image_url": "https://cdn.test/a.jpg"},
            {"image_url": "https://cdn.test/b.jpg", "is_primary": True},
        ]
    )
    r = client.post("/api/properties", json=payload, headers=auth_headers(make_user()))
    assert r.status_code == 201, r.text
    assert [i["is_primary"] for i in r.json()["property"]["images"]] == [False, True]


def test_create_property_is_atomic(client, db_session, make_user, auth_headers):
    def _reject_image(mapper, connection, target):
        raise IntegrityError("INSERT INTO property_images", {}, Exception("rejected"))

    headers = auth_headers(make_user())
    event.listen(PropertyImage, "before_insert", _reject_image)
    try:
        r = client.post("/api/properties", json=_property_payload(), headers=headers)
    finally:
        event.remove(PropertyImage, "before_insert", _reject_image)
    assert r.status_code == 500
    assert db_session.execute(select(func.count(Property.id))).scalar_one() == 0
    assert db_session.execute(select(func.count(PropertyImage.id))).scalar_one() == 0


def test_create_property_validation(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    for overrides in (
        {"title": "Kurz"},
        {"description": "zu kurz"},
        {"rooms": 0},
        {"price": "teuer"},
        {"type": "castle"},
    ):
        r = client.post(
            "/api/properties", json=_property_payload(**overrides), headers=headers
        )
        assert r.status_code == 400, overrides


def test_create_property_requires_staff_role(client, make_user, auth_headers):
    visitor = make_user("visitor", role=UserRole.USER)
    r = client.post(
        "/api/properties", json=_property_payload(), headers=auth_headers(visitor)
    )
    assert r.status_code == 403


def test_create_property_requires_authentication(client):
    r = client.post("/api/properties", json=_property_payload())
    assert r.status_code == 401


def test_get_property_details(client, make_user, make_property):
    owner = make_user("makler")
    listing = make_property(owner=owner, images=[{}, {"is_primary": True}])
    r = client.get(f"/api/properties/{listing.id}")
    assert r.status_code == 200, r.text
    data = r.json()["property"]
    assert data["created_by_username"] == "makler"
    assert data["created_by_name"] == "Makler"
    assert len(data["images"]) == 2
    assert "is_favorited" not in data


def test_get_missing_property(client):
    r = client.get("/api/properties/999")
    assert r.status_code == 404
    assert r.json()["error"] == "Immobilie nicht gefunden"


def test_get_property_increments_views(client, db_session, make_property):
    listing = make_property()
    for _ in range(2):
        assert client.get(f"/api/properties/{listing.id}").status_code == 200
    db_session.expire_all()
    assert db_session.get(Property, listing.id).views == 2


def test_view_counter_failure_does_not_fail_request(
    client, database, monkeypatch, make_property
):
    listing = make_property()

    def _fail(statement, params=None):
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    monkeypatch.setattr(database, "execute", _fail)
    r = client.get(f"/api/properties/{listing.id}")
    assert r.status_code == 200
    assert r.json()["property"]["views"] == 0


def test_get_property_reports_favorite_state(
    client, db_session, make_user, make_property, auth_headers
):
    user = make_user("fan", role=UserRole.USER)
    listing = make_property()
    headers = auth_headers(user)

    before = client.get(f"/api/properties/{listing.id}", headers=headers).json()
    assert before["property"]["is_favorited"] is False

    db_session.add(Favorite(user_id=user.id, property_id=listing.id))
    db_session.commit()
    after = client.get(f"/api/properties/{listing.id}", headers=headers).json()
    assert after["property"]["is_favorited"] is True


def test_owner_updates_property(client, make_user, make_property, auth_headers):
    owner = make_user()
    listing = make_property(owner=owner)
    r = client.put(
        f"/api/properties/{listing.id}",
        json={"price": 1250, "features": ["Garten"], "status": "reserved"},
        headers=auth_headers(owner),
    )
    assert r.status_code == 200, r.text
    data = r.json()["property"]
    assert data["price"] == 1250
    assert data["features"] == ["Garten"]
    assert data["status"] == "reserved"


def test_update_ignores_unknown_fields(
    client, db_session, make_user, make_property, auth_headers
):
    owner = make_user()
    listing = make_property(owner=owner)
    r = client.put(
        f"/api/properties/{listing.id}",
        json={"views": 9999, "user_id": 42},
        headers=auth_headers(owner),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Keine gültigen Felder zum Aktualisieren"
    db_session.expire_all()
    stored = db_session.get(Property, listing.id)
    assert stored.views == 0
    assert stored.user_id == owner.id


def test_other_agent_cannot_update(client, make_user, make_property, auth_headers):
    listing = make_property(owner=make_user("owner"))
    intruder = make_user("intruder")
    r = client.put(
        f"/api/properties/{listing.id}",
        json={"price": 1},
        headers=auth_headers(intruder),
    )
    assert r.status_code == 403


def test_admin_can_update_any_property(client, make_user, make_property, auth_headers):
    listing = make_property(owner=make_user("owner"))
    admin = make_user("chef", role=UserRole.ADMIN)
    r = client.put(
        f"/api/properties/{listing.id}",
        json={"featured": True},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    assert r.json()["property"]["featured"] is True


def test_regular_user_cannot_delete_foreign_property(
    client, make_user, make_property, auth_headers
):
    listing = make_property(owner=make_user("owner"))
    visitor = make_user("visitor", role=UserRole.USER)
    r = client.delete(f"/api/properties/{listing.id}", headers=auth_headers(visitor))
    assert r.status_code == 403
    assert client.get(f"/api/properties/{listing.id}").status_code == 200


def test_owner_deletes_property_with_images_and_favorites(
    client, db_session, make_user, make_property, auth_headers
):
    owner = make_user()
    listing = make_property(owner=owner, images=[{}, {}])
    db_session.add(Favorite(user_id=owner.id, property_id=listing.id))
    db_session.commit()

    r = client.delete(f"/api/properties/{listing.id}", headers=auth_headers(owner))
    assert r.status_code == 200, r.text
    assert client.get(f"/api/properties/{listing.id}").status_code == 404
    assert db_session.execute(select(func.count(PropertyImage.id))).scalar_one() == 0
    assert db_session.execute(select(func.count(Favorite.id))).scalar_one() == 0


def test_similar_properties(client, make_property):
    ref = make_property(title="Referenz Wohnung", city="Karben", price=1000)
    same_city = make_property(title="Gleiche Stadt", city="Karben", price=2000)
    near_price = make_property(title="Ähnlicher Preis", city="Usingen", price=1100)
    make_property(title="Zu teuer woanders", city="Usingen", price=5000)
    make_property(title="Anderer Typ", type=PropertyType.HOUSE, price=1000)
    make_property(title="Kaufobjekt", offer_type=OfferType.SALE, price=1000)
    make_property(title="Schon vermietet", status=PropertyStatus.RENTED, price=1000)

    r = client.get(f"/api/properties/{ref.id}/similar")
    assert r.status_code == 200, r.text
    ids = [p["id"] for p in r.json()["similar"]]
    assert ids == [same_city.id, near_price.id]

    limited = client.get(f"/api/properties/{ref.id}/similar", params={"limit": 1})
    assert [p["id"] for p in limited.json()["similar"]] == [same_city.id]


def test_similar_orders_city_matches_by_price_distance(client, make_property):
    ref = make_property(city="Karben", price=1000)
    far = make_property(city="Karben", price=1800)
    close = make_property(city="Karben", price=950)
    other_city = make_property(city="Usingen", price=1000)

    ids = [p["id"] for p in client.get(f"/api/properties/{ref.id}/similar").json()["similar"]]
    assert ids == [close.id, far.id, other_city.id]


def test_similar_for_missing_property(client):
    assert client.get("/api/properties/404/similar").status_code == 404


def test_categorized_properties(client, make_property):
    now = datetime.now(timezone.utc)
    fresh = make_property(title="Neu eingestellt", created_at=now - timedelta(days=1))
    old = make_property(title="Schon länger online", created_at=now - timedelta(days=30))
    make_property(title="Verkauft", status=PropertyStatus.SOLD, created_at=now)

    r = client.get("/api/properties/categorized")
    assert r.status_code == 200, r.text
    data = r.json()
    assert [p["id"] for p in data["recent"]] == [fresh.id]
    assert [p["id"] for p in data["archived"]] == [old.id]
    assert data["total"] == 2
    assert data["threshold_days"] == 14

    wide = client.get("/api/properties/categorized", params={"days": 60}).json()
    assert [p["id"] for p in wide["recent"]] == [fresh.id, old.id]
    assert wide["archived"] == []


def test_update_rejects_null_for_required_fields(
    client, db_session, make_user, make_property, auth_headers
):
    owner = make_user()
    listing = make_property(owner=owner)
    headers = auth_headers(owner)
    for body in ({"title": None}, {"price": None}, {"status": None}, {"featured": None}):
        r = client.put(f"/api/properties/{listing.id}", json=body, headers=headers)
        assert r.status_code == 400, body
        assert r.json()["code"] == "validation_error"

    # Optional columns may still be cleared
    r = client.put(f"/api/properties/{listing.id}", json={"city": None}, headers=headers)
    assert r.status_code == 200
    assert r.json()["property"]["city"] is None
