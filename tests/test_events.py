import math
from datetime import timedelta

import models
import utils
from conftest import TEST_BUCKET, auth_headers, png_file

BUCKET_URL = f"https://storage.googleapis.com/{TEST_BUCKET}/"


def event_fields(club_id, days=2, **overrides):
    fields = {
        "club_id": club_id,
        "title": "Workshop",
        "description": "Learn things",
        "date_time": (utils.utcnow() + timedelta(days=days)).isoformat(),
        "location": "Room 1",
    }
    fields.update(overrides)
    return fields


def test_owner_creates_event_with_banner(client, make_club, representative, storage):
    club = make_club(owner=representative)
    response = client.post(
        "/api/events",
        data=event_fields(club.id),
        files={"eventBanner": png_file("banner.png")},
        headers=auth_headers(representative),
    )
    assert response.status_code == 201
    event = response.json()["event"]
    assert event["club_id"] == club.id
    assert event["club_name"] == club.name
    assert event["banner_image_url"].startswith(BUCKET_URL + "event-banners/")
    assert len(storage.objects) == 1


def test_create_event_as_json(client, make_club, representative):
    club = make_club(owner=representative)
    response = client.post(
        "/api/events",
        json=event_fields(club.id, video_url="https://video.example.com/1"),
        headers=auth_headers(representative),
    )
    assert response.status_code == 201
    assert response.json()["event"]["video_url"] == "https://video.example.com/1"


def test_cannot_post_events_for_other_clubs(client, make_club, representative):
    other = make_club()
    response = client.post("/api/events", json=event_fields(other.id), headers=auth_headers(representative))
    assert response.status_code == 403


def test_admin_posts_for_any_club(client, make_club, admin):
    club = make_club()
    assert client.post("/api/events", json=event_fields(club.id), headers=auth_headers(admin)).status_code == 201


def test_create_event_for_unknown_club(client, admin):
    assert client.post("/api/events", json=event_fields(404), headers=auth_headers(admin)).status_code == 404


def test_create_event_validation(client, make_club, representative):
    club = make_club(owner=representative)
    headers = auth_headers(representative)

    missing_title = event_fields(club.id)
    del missing_title["title"]
    assert client.post("/api/events", json=missing_title, headers=headers).status_code == 400

    bad_date = event_fields(club.id, date_time="next tuesday")
    assert client.post("/api/events", json=bad_date, headers=headers).status_code == 400


def test_whitespace_only_text_is_rejected(client, make_club, make_event, representative, db_session):
    club = make_club(owner=representative)
    headers = auth_headers(representative)

    for overrides in ({"title": "   "}, {"description": " "}):
        response = client.post("/api/events", json=event_fields(club.id, **overrides), headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
    assert db_session.query(models.Event).count() == 0

    event = make_event(club, title="Kept")
    for body in ({"title": "  "}, {"description": "\t"}):
        assert client.put(f"/api/events/{event.id}", json=body, headers=headers).status_code == 400

    db_session.expire_all()
    assert db_session.get(models.Event, event.id).title == "Kept"


def test_event_text_is_trimmed(client, make_club, representative):
    club = make_club(owner=representative)
    response = client.post(
        "/api/events",
        json=event_fields(club.id, title="  Hack night ", description=" Bring snacks "),
        headers=auth_headers(representative),
    )
    assert response.status_code == 201
    body = response.json()["event"]
    assert body["title"] == "Hack night"
    assert body["description"] == "Bring snacks"


def test_create_event_requires_token(client, make_club):
    club = make_club()
    assert client.post("/api/events", json=event_fields(club.id)).status_code == 401


# --- listing ---

def test_events_of_unapproved_clubs_are_hidden(client, make_club, make_event, student, admin):
    approved = make_club()
    pending = make_club(approved=False)
    shown = make_event(approved)
    hidden = make_event(pending)

    public_ids = [e["id"] for e in client.get("/api/events").json()["items"]]
    assert public_ids == [shown.id]

    assert client.get(f"/api/events/{hidden.id}").status_code == 404
    assert client.get(f"/api/events/{hidden.id}", headers=auth_headers(student)).status_code == 404
    assert client.get(f"/api/events/{hidden.id}", headers=auth_headers(admin)).status_code == 200

    admin_ids = {e["id"] for e in client.get("/api/events", headers=auth_headers(admin)).json()["items"]}
    assert admin_ids == {shown.id, hidden.id}


def test_date_status_filters_and_orders(client, make_club, make_event):
    club = make_club()
    long_ago = make_event(club, days=-30, title="Long ago")
    yesterday = make_event(club, days=-1, title="Yesterday")
    tomorrow = make_event(club, days=1, title="Tomorrow")
    next_week = make_event(club, days=7, title="Next week")

    def ids(**params):
        return [e["id"] for e in client.get("/api/events", params=params).json()["items"]]

    assert ids(date_status="upcoming") == [tomorrow.id, next_week.id]
    assert ids(date_status="past") == [yesterday.id, long_ago.id]
    assert ids(date_status="all") == [long_ago.id, yesterday.id, tomorrow.id, next_week.id]
    assert ids() == ids(date_status="all")


def test_past_event_created_through_api(client, make_club, representative):
    club = make_club(owner=representative)
    created = client.post(
        "/api/events",
        json=event_fields(club.id, days=-3, title="Already happened"),
        headers=auth_headers(representative),
    ).json()["event"]

    upcoming = [e["id"] for e in client.get("/api/events", params={"date_status": "upcoming"}).json()["items"]]
    past = [e["id"] for e in client.get("/api/events", params={"date_status": "past"}).json()["items"]]
    assert created["id"] not in upcoming
    assert created["id"] in past


def test_unknown_date_status_is_rejected(client):
    assert client.get("/api/events", params={"date_status": "soon"}).status_code == 400


def test_event_pages_cover_everything_once(client, make_club, make_event):
    club = make_club()
    events = [make_event(club, days=d) for d in (5, 1, 3, 2, 4)]
    expected = [e.id for e in sorted(events, key=lambda e: e.date_time)]

    limit = 2
    first = client.get("/api/events", params={"limit": limit}).json()
    assert first["totalItems"] == 5
    assert first["totalPages"] == math.ceil(5 / limit)

    seen = []
    for page in range(1, first["totalPages"] + 1):
        seen.extend(e["id"] for e in client.get("/api/events", params={"page": page, "limit": limit}).json()["items"])
    assert seen == expected


def test_page_past_the_end_is_empty(client, make_club, make_event):
    make_event(make_club())
    body = client.get("/api/events", params={"page": 5, "limit": 10}).json()
    assert body["items"] == []
    assert body["totalItems"] == 1
    assert body["totalPages"] == 1


def test_filter_events_by_club(client, make_club, make_event):
    mine = make_club()
    other = make_club()
    own_event = make_event(mine)
    make_event(other)

    body = client.get("/api/events", params={"club_id": mine.id}).json()
    assert [e["id"] for e in body["items"]] == [own_event.id]
    assert body["totalItems"] == 1


# --- updates & deletes ---

def test_owner_updates_event(client, make_club, make_event, representative):
    club = make_club(owner=representative)
    event = make_event(club)
    new_time = (utils.utcnow() + timedelta(days=10)).replace(microsecond=0)

    response = client.put(
        f"/api/events/{event.id}",
        json={"title": "New title", "date_time": new_time.isoformat()},
        headers=auth_headers(representative),
    )
    assert response.status_code == 200
    body = response.json()["event"]
    assert body["title"] == "New title"
    assert body["description"] == event.description
    assert body["date_time"].startswith(new_time.strftime("%Y-%m-%dT%H:%M:%S"))


def test_non_owner_cannot_touch_event(client, make_club, make_event, make_user, db_session):
    event = make_event(make_club(), title="Original")
    stranger = make_user(models.UserRole.CLUB_REPRESENTATIVE)
    student = make_user(models.UserRole.STUDENT)

    for user in (stranger, student):
        headers = auth_headers(user)
        assert client.put(f"/api/events/{event.id}", json={"title": "Hijacked"}, headers=headers).status_code == 403
        assert client.delete(f"/api/events/{event.id}", headers=headers).status_code == 403

    db_session.expire_all()
    assert db_session.get(models.Event, event.id).title == "Original"


def test_update_rejects_empty_required_fields(client, make_club, make_event, representative):
    event = make_event(make_club(owner=representative))
    response = client.put(f"/api/events/{event.id}", json={"title": None}, headers=auth_headers(representative))
    assert response.status_code == 400


def test_replacing_banner_deletes_old_object(client, make_club, representative, storage):
    club = make_club(owner=representative)
    headers = auth_headers(representative)
    event = client.post(
        "/api/events", data=event_fields(club.id), files={"eventBanner": png_file("one.png")}, headers=headers
    ).json()["event"]
    old_key = event["banner_image_url"][len(BUCKET_URL):]

    response = client.put(
        f"/api/events/{event['id']}", data={"location": "Room 2"}, files={"eventBanner": png_file("two.png")}, headers=headers
    )
    assert response.status_code == 200
    body = response.json()["event"]
    assert body["location"] == "Room 2"
    assert body["banner_image_url"] != event["banner_image_url"]
    assert storage.deleted == [old_key]


def test_clearing_banner(client, make_club, make_event, representative, storage):
    banner = storage.public_url("event-banners/xyz-banner.png")
    event = make_event(make_club(owner=representative), banner_image_url=banner)

    response = client.put(f"/api/events/{event.id}", json={"banner_image_url": None}, headers=auth_headers(representative))
    assert response.status_code == 200
    assert response.json()["event"]["banner_image_url"] is None
    assert storage.deleted == ["event-banners/xyz-banner.png"]


def test_delete_event_removes_banner_and_attendances(client, make_club, make_event, representative, student, storage, db_session):
    banner = storage.public_url("event-banners/xyz-banner.png")
    event = make_event(make_club(owner=representative), banner_image_url=banner)
    assert client.post(f"/api/events/{event.id}/attend", headers=auth_headers(student)).status_code == 201

    event_id = event.id
    response = client.delete(f"/api/events/{event_id}", headers=auth_headers(representative))
    assert response.status_code == 200
    assert storage.deleted == ["event-banners/xyz-banner.png"]

    db_session.expire_all()
    assert db_session.get(models.Event, event_id) is None
    assert db_session.query(models.EventAttendance).count() == 0


def test_delete_survives_storage_failure(client, make_club, make_event, admin, storage):
    storage.fail_deletes = True
    event = make_event(make_club(), banner_image_url=storage.public_url("event-banners/a.png"))

    event_id = event.id
    assert client.delete(f"/api/events/{event_id}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"/api/events/{event_id}").status_code == 404
