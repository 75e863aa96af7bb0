"""
Tests for tour endpoints: organizer CRUD, visibility, listing filters,
sorting, pagination, availability on listing cards, the participant roster
and the organizer's bookings table.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from soultrip.api.routes import tours as tour_routes
from soultrip.models.tour import Tour
from soultrip.services.interfaces.booking_store import BookingFilter


def _tour_body(**overrides):
    start = date.today() + timedelta(days=30)
    body = {
        "title": "Andean Breathwork Journey",
        "description": "Breathwork and high-altitude walks",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=7)).isoformat(),
        "price": "2100.00",
        "currency": "usd",
        "max_participants": 12,
        "country": "  Peru ",
        "difficulty": "challenging",
        "images": [
            {"image_url": "https://img.example.com/1.jpg", "alt_text": "Valley"},
            {"image_url": "https://img.example.com/2.jpg"},
        ],
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_tour(client: AsyncClient, organizer, organizer_headers):
    """Organizer creates a draft; currency and country are normalized."""
    response = await client.post("/api/v1/tours/", json=_tour_body(), headers=organizer_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "draft"
    assert data["currency"] == "USD"
    assert data["country"] == "peru"
    assert data["organizer_id"] == organizer.id
    assert data["organizer_name"] == "Ravi Guide"
    assert [img["position"] for img in data["images"]] == [0, 1]


@pytest.mark.asyncio
async def test_create_tour_as_participant_forbidden(client: AsyncClient, participant_headers):
    response = await client.post("/api/v1/tours/", json=_tour_body(), headers=participant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_tour_unauthenticated(client: AsyncClient):
    response = await client.post("/api/v1/tours/", json=_tour_body())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_tour_end_before_start(client: AsyncClient, organizer_headers):
    body = _tour_body(start_date="2030-05-10", end_date="2030-05-01")
    response = await client.post("/api/v1/tours/", json=body, headers=organizer_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_tour_zero_capacity(client: AsyncClient, organizer_headers):
    response = await client.post(
        "/api/v1/tours/", json=_tour_body(max_participants=0), headers=organizer_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_listing_shows_only_published(client: AsyncClient, published_tour, draft_tour):
    response = await client.get("/api/v1/tours/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert [t["id"] for t in data["tours"]] == [published_tour.id]
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_draft_visible_to_owner_only(
    client: AsyncClient, draft_tour, organizer_headers, participant_headers
):
    owner = await client.get(f"/api/v1/tours/{draft_tour.id}", headers=organizer_headers)
    assert owner.status_code == 200
    assert owner.json()["status"] == "draft"

    other = await client.get(f"/api/v1/tours/{draft_tour.id}", headers=participant_headers)
    assert other.status_code == 404

    anonymous = await client.get(f"/api/v1/tours/{draft_tour.id}")
    assert anonymous.status_code == 404


@pytest.mark.asyncio
async def test_get_unknown_tour(client: AsyncClient):
    response = await client.get("/api/v1/tours/424242")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_filter_by_country_and_difficulty(client: AsyncClient, published_tour, make_tour):
    await make_tour(title="Kyoto Temples", country="japan", difficulty="easy")
    await make_tour(title="Annapurna Circuit", country="nepal", difficulty="intense")

    response = await client.get(
        "/api/v1/tours/", params={"countries": ["Nepal", "japan"], "difficulty": "moderate"}
    )
    data = response.json()
    assert data["total"] == 1
    assert data["tours"][0]["id"] == published_tour.id

    response = await client.get("/api/v1/tours/", params={"countries": ["japan", "nepal"]})
    assert response.json()["total"] == 3


@pytest.mark.asyncio
async def test_filter_by_date_range(client: AsyncClient, make_tour):
    soon = date.today() + timedelta(days=10)
    later = date.today() + timedelta(days=200)
    early = await make_tour(title="Early", start_date=soon, end_date=soon + timedelta(days=5))
    await make_tour(title="Late", start_date=later, end_date=later + timedelta(days=5))

    response = await client.get(
        "/api/v1/tours/",
        params={
            "start_date": date.today().isoformat(),
            "end_date": (soon + timedelta(days=30)).isoformat(),
        },
    )
    data = response.json()
    assert [t["id"] for t in data["tours"]] == [early.id]


@pytest.mark.asyncio
async def test_sort_by_price(client: AsyncClient, make_tour):
    await make_tour(title="Mid", price=Decimal("900.00"))
    await make_tour(title="Cheap", price=Decimal("300.00"))
    await make_tour(title="Premium", price=Decimal("5000.00"))

    response = await client.get("/api/v1/tours/", params={"sort": "price_asc"})
    prices = [Decimal(str(t["price"])) for t in response.json()["tours"]]
    assert prices == sorted(prices)

    response = await client.get("/api/v1/tours/", params={"sort": "price_desc"})
    prices = [Decimal(str(t["price"])) for t in response.json()["tours"]]
    assert prices == sorted(prices, reverse=True)


@pytest.mark.asyncio
async def test_unknown_sort_rejected(client: AsyncClient):
    response = await client.get("/api/v1/tours/", params={"sort": "popularity"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_pagination(client: AsyncClient, make_tour):
    for i in range(5):
        await make_tour(title=f"Tour {i}")

    first = (await client.get("/api/v1/tours/", params={"page": 1, "page_size": 2})).json()
    third = (await client.get("/api/v1/tours/", params={"page": 3, "page_size": 2})).json()

    assert first["total"] == 5
    assert len(first["tours"]) == 2
    assert len(third["tours"]) == 1
    # Newest first
    assert first["tours"][0]["title"] == "Tour 4"


@pytest.mark.asyncio
async def test_update_tour(client: AsyncClient, draft_tour, organizer_headers):
    response = await client.patch(
        f"/api/v1/tours/{draft_tour.id}",
        json={"status": "published", "max_participants": 3, "country": "MOROCCO"},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "published"
    assert data["max_participants"] == 3
    assert data["country"] == "morocco"
    assert data["title"] == "Unannounced Desert Walk"


@pytest.mark.asyncio
async def test_update_tour_replaces_images(client: AsyncClient, published_tour, organizer_headers):
    response = await client.patch(
        f"/api/v1/tours/{published_tour.id}",
        json={"images": [{"image_url": "https://img.example.com/new.jpg"}]},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    images = response.json()["images"]
    assert len(images) == 1
    assert images[0]["image_url"] == "https://img.example.com/new.jpg"


@pytest.mark.asyncio
async def test_update_tour_invalid_dates(client: AsyncClient, published_tour, organizer_headers):
    response = await client.patch(
        f"/api/v1/tours/{published_tour.id}",
        json={"end_date": (published_tour.start_date - timedelta(days=1)).isoformat()},
        headers=organizer_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_tour_cannot_clear_title(client: AsyncClient, published_tour, organizer_headers):
    response = await client.patch(
        f"/api/v1/tours/{published_tour.id}", json={"title": None}, headers=organizer_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_tour_not_owner(client: AsyncClient, published_tour, participant_headers):
    response = await client.patch(
        f"/api/v1/tours/{published_tour.id}", json={"title": "Mine now"}, headers=participant_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_tour_removes_bookings(
    client: AsyncClient, published_tour, participant, organizer_headers, booking_store
):
    await booking_store.insert(published_tour.id, participant.id, "pending", "unpaid")

    response = await client.delete(f"/api/v1/tours/{published_tour.id}", headers=organizer_headers)
    assert response.status_code == 204

    assert (await client.get(f"/api/v1/tours/{published_tour.id}")).status_code == 404
    assert await booking_store.count(BookingFilter(tour_id=published_tour.id)) == 0


@pytest.mark.asyncio
async def test_my_tours_include_drafts(
    client: AsyncClient, published_tour, draft_tour, organizer_headers
):
    response = await client.get("/api/v1/tours/mine", headers=organizer_headers)
    assert response.status_code == 200
    assert {t["id"] for t in response.json()} == {published_tour.id, draft_tour.id}


@pytest.mark.asyncio
async def test_roster_lists_active_participants(
    client: AsyncClient,
    published_tour,
    participant,
    second_participant,
    organizer_headers,
    booking_store,
):
    await booking_store.insert(published_tour.id, participant.id, "confirmed", "paid")
    await booking_store.insert(published_tour.id, second_participant.id, "cancelled", "unpaid")

    response = await client.get(
        f"/api/v1/tours/{published_tour.id}/participants", headers=organizer_headers
    )
    assert response.status_code == 200
    roster = response.json()
    assert [p["id"] for p in roster] == [participant.id]
    assert roster[0]["full_name"] == "Maya Traveller"


@pytest.mark.asyncio
async def test_roster_forbidden_for_participants(
    client: AsyncClient, published_tour, participant_headers
):
    response = await client.get(
        f"/api/v1/tours/{published_tour.id}/participants", headers=participant_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_bookings_table_keeps_cancelled_rows(
    client: AsyncClient,
    published_tour,
    participant,
    second_participant,
    organizer_headers,
    booking_store,
):
    first = await booking_store.insert(published_tour.id, participant.id, "confirmed", "paid")
    second = await booking_store.insert(published_tour.id, second_participant.id, "cancelled", "unpaid")

    response = await client.get(
        f"/api/v1/tours/{published_tour.id}/bookings", headers=organizer_headers
    )
    assert response.status_code == 200
    rows = response.json()
    assert [r["id"] for r in rows] == [second.id, first.id]
    assert rows[0]["status"] == "cancelled"
    assert rows[0]["payment_status"] == "unpaid"
    assert rows[0]["participant"] == {"id": second_participant.id, "full_name": "Leo Wanderer"}
    assert rows[1]["participant"]["full_name"] == "Maya Traveller"
    assert "created_at" in rows[1]


@pytest.mark.asyncio
async def test_bookings_table_forbidden_for_participants(
    client: AsyncClient, published_tour, participant_headers
):
    response = await client.get(
        f"/api/v1/tours/{published_tour.id}/bookings", headers=participant_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_listing_marks_sold_out_tours(
    client: AsyncClient,
    published_tour,
    make_tour,
    participant,
    second_participant,
    booking_store,
):
    roomy = await make_tour(title="Open Coast Walk", country="portugal", max_participants=8)
    await booking_store.insert(published_tour.id, participant.id, "pending", "unpaid")
    await booking_store.insert(published_tour.id, second_participant.id, "confirmed", "paid")
    await booking_store.insert(roomy.id, participant.id, "pending", "unpaid")
    await booking_store.insert(roomy.id, second_participant.id, "cancelled", "unpaid")

    response = await client.get("/api/v1/tours/")
    cards = {t["id"]: t for t in response.json()["tours"]}

    assert cards[published_tour.id]["is_sold_out"] is True
    assert cards[published_tour.id]["current_bookings"] == 2
    assert cards[published_tour.id]["max_participants"] == 2
    assert cards[roomy.id]["is_sold_out"] is False
    assert cards[roomy.id]["current_bookings"] == 1


@pytest.mark.asyncio
async def test_listing_flag_follows_bookings(
    client: AsyncClient,
    published_tour,
    participant_headers,
    second_participant_headers,
    monkeypatch,
):
    invalidations = []

    async def record_invalidation():
        invalidations.append("tours")

    monkeypatch.setattr(tour_routes, "invalidate_tour_cache", record_invalidation)

    await client.post(f"/api/v1/tours/{published_tour.id}/booking", headers=participant_headers)
    await client.post(f"/api/v1/tours/{published_tour.id}/booking", headers=second_participant_headers)
    assert len(invalidations) == 2

    card = (await client.get("/api/v1/tours/")).json()["tours"][0]
    assert card["is_sold_out"] is True

    await client.delete(f"/api/v1/tours/{published_tour.id}/booking", headers=participant_headers)
    assert len(invalidations) == 3

    card = (await client.get("/api/v1/tours/")).json()["tours"][0]
    assert card["is_sold_out"] is False
    assert card["current_bookings"] == 1


@pytest.mark.asyncio
async def test_cache_dropped_after_update_is_committed(
    client: AsyncClient, published_tour, organizer_headers, session_factory, monkeypatch
):
    seen_titles = []

    async def read_title_on_invalidation():
        async with session_factory() as session:
            tour = await session.get(Tour, published_tour.id)
            seen_titles.append(tour.title)

    monkeypatch.setattr(tour_routes, "invalidate_tour_cache", read_title_on_invalidation)

    response = await client.patch(
        f"/api/v1/tours/{published_tour.id}",
        json={"title": "Himalayan Silence Retreat II"},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    assert seen_titles == ["Himalayan Silence Retreat II"]
