# Shared queries and ORM -> schema mapping for the routers
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, contains_eager, joinedload
from sqlalchemy.sql import Select

import errors
import models
import schemas
from schemas import DateStatus
from utils import Identity, as_utc, utcnow


def _sees_everything(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.is_admin


# --- CLUBS ---

def clubs_query(identity: Optional[Identity]) -> Select:
    """Clubs visible to the caller, by name. Non-admins only see approved clubs."""
    query = select(models.Club).options(joinedload(models.Club.representative))
    if not _sees_everything(identity):
        query = query.where(models.Club.is_approved == True)  # noqa: E712
    return query.order_by(models.Club.name.asc(), models.Club.id.asc())


def get_club(db: Session, club_id: int) -> models.Club:
    club = db.get(models.Club, club_id)
    if club is None:
        raise errors.NotFound("Club not found")
    return club


def get_visible_club(db: Session, club_id: int, identity: Optional[Identity]) -> models.Club:
    club = db.get(models.Club, club_id)
    if club is None or (not club.is_approved and not _sees_everything(identity)):
        raise errors.NotFound("Club not found or not approved")
    return club


def map_club_to_response(club: models.Club) -> schemas.ClubOut:
    return schemas.ClubOut(
        id=club.id,
        user_id=club.user_id,
        name=club.name,
        description=club.description,
        contact_email=club.contact_email,
        logo_url=club.logo_url,
        is_approved=bool(club.is_approved),
        representative_name=club.representative.name if club.representative else None,
        created_at=club.created_at,
    )


# --- EVENTS ---

def events_query(
    identity: Optional[Identity],
    date_status: DateStatus = DateStatus.ALL,
    club_id: Optional[int] = None,
) -> Select:
    """
    Events visible to the caller. Non-admins only see events of approved clubs.
    upcoming/all are ordered soonest first, past is ordered most recent first.
    """
    query = (
        select(models.Event)
        .join(models.Event.club)
        .options(contains_eager(models.Event.club))
    )

    if not _sees_everything(identity):
        query = query.where(models.Club.is_approved == True)  # noqa: E712

    if club_id is not None:
        query = query.where(models.Event.club_id == club_id)

    now = utcnow()
    if date_status == DateStatus.UPCOMING:
        query = query.where(models.Event.date_time >= now)
    elif date_status == DateStatus.PAST:
        query = query.where(models.Event.date_time < now)

    if date_status == DateStatus.PAST:
        return query.order_by(models.Event.date_time.desc(), models.Event.id.desc())
    return query.order_by(models.Event.date_time.asc(), models.Event.id.asc())


def get_event(db: Session, event_id: int) -> models.Event:
    event = db.get(models.Event, event_id)
    if event is None:
        raise errors.NotFound("Event not found")
    return event


def get_visible_event(db: Session, event_id: int, identity: Optional[Identity]) -> models.Event:
    event = db.get(models.Event, event_id)
    if event is None or (not event.club.is_approved and not _sees_everything(identity)):
        raise errors.NotFound("Event not found or belongs to a club that is not approved")
    return event


def map_event_to_response(event: models.Event) -> schemas.EventOut:
    """Convert Event model to EventOut schema."""
    return schemas.EventOut(
        id=event.id,
        club_id=event.club_id,
        club_name=event.club.name if event.club else None,
        title=event.title,
        description=event.description,
        date_time=as_utc(event.date_time),
        location=event.location,
        banner_image_url=event.banner_image_url,
        video_url=event.video_url,
    )


def map_events(events: List[models.Event]) -> List[schemas.EventOut]:
    return [map_event_to_response(event) for event in events]
