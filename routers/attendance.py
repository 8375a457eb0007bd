import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import crud
import errors
import models
import schemas
from database import get_db
from utils import Identity, as_utc, authorize, get_current_identity, owner_or_admin, require_roles, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Attendance"])

student_only = require_roles(models.UserRole.STUDENT)


@router.post(
    "/api/events/{event_id}/attend",
    response_model=schemas.AttendanceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_attendance(
    event_id: int,
    request: Request,
    identity: Identity = Depends(student_only),
    db: Session = Depends(get_db),
):
    # 1. The event has to exist and belong to an approved club
    event = crud.get_visible_event(db, event_id, None)

    # 2. Past events, see ALLOW_PAST_EVENT_REGISTRATION
    settings = request.app.state.settings
    if not settings.allow_past_event_registration and as_utc(event.date_time) < utcnow():
        raise errors.ValidationFailed("You cannot register for an event that already took place")

    # 3. Insert; the (user, event) unique constraint catches duplicates
    attendance = models.EventAttendance(user_id=identity.id, event_id=event.id)
    try:
        db.add(attendance)
        db.commit()
        db.refresh(attendance)
    except IntegrityError:
        db.rollback()
        raise errors.Conflict("You are already registered for this event")
    except Exception as e:
        logger.exception("Error registering attendance for event %s: %s", event_id, e)
        db.rollback()
        raise errors.InternalError("Internal server error while registering attendance")

    logger.info("User %s registered for event %s", identity.id, event_id)
    return schemas.AttendanceResponse(message="Attendance registered successfully", attendance=schemas.AttendanceOut.model_validate(attendance))


@router.get("/api/events/{event_id}/attendees", response_model=List[schemas.AttendeeOut])
async def get_event_attendees(
    event_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Attendees of an event, for the representative of the owning club or an admin."""
    event = crud.get_event(db, event_id)
    authorize(identity, owner_or_admin(event.club.user_id), "You are not allowed to see the attendees of this event")

    try:
        query = (
            select(models.User.id, models.User.name, models.User.email, models.EventAttendance.registration_time)
            .join(models.EventAttendance, models.EventAttendance.user_id == models.User.id)
            .where(models.EventAttendance.event_id == event_id)
            .order_by(models.EventAttendance.registration_time.asc(), models.EventAttendance.id.asc())
        )
        rows = db.execute(query).all()

        return [
            schemas.AttendeeOut(id=row.id, name=row.name, email=row.email, registration_time=row.registration_time)
            for row in rows
        ]

    except HTTPException:
        raise

    except Exception as e:
        logger.exception("Error getting attendees for event %s: %s", event_id, e)
        db.rollback()
        raise errors.InternalError("Internal server error while getting attendees")


@router.get("/api/attendance/my-events", response_model=List[schemas.MyEventOut])
async def get_my_attended_events(
    identity: Identity = Depends(student_only),
    db: Session = Depends(get_db),
):
    try:
        query = (
            select(models.Event, models.EventAttendance.registration_time)
            .join(models.EventAttendance, models.EventAttendance.event_id == models.Event.id)
            .join(models.Event.club)
            .where(models.EventAttendance.user_id == identity.id)
            .where(models.Club.is_approved == True)  # noqa: E712
            .order_by(models.Event.date_time.desc(), models.Event.id.desc())
        )
        rows = db.execute(query).all()

        my_events = []
        for event, registration_time in rows:
            my_events.append(schemas.MyEventOut(
                id=event.id,
                club_id=event.club_id,
                club_name=event.club.name,
                title=event.title,
                description=event.description,
                date_time=as_utc(event.date_time),
                location=event.location,
                banner_image_url=event.banner_image_url,
                registration_time=registration_time,
            ))
        return my_events

    except HTTPException:
        raise

    except Exception as e:
        logger.exception("Error getting attended events for user %s: %s", identity.id, e)
        db.rollback()
        raise errors.InternalError("Internal server error while getting your events")
