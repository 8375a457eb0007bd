import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

import crud
import errors
import models
import schemas
import utils
from database import get_db
from media import EVENT_BANNER_PREFIX, UNSET, discard_object, discard_url, resolve_media_change
from pagination import PageParams, page_params, paginate
from storage import ObjectStorage, get_storage
from utils import Identity, as_utc, authorize, get_current_identity, get_optional_identity, owner_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["Events"])

BANNER_FIELD = "eventBanner"


# posting an event (the club's representative or an admin)
@router.post("", response_model=schemas.EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: Optional[ObjectStorage] = Depends(get_storage),
):
    fields, files = await utils.read_payload(request)
    event_in = utils.parse_model(schemas.EventCreate, fields)

    # 1. Fetch the club the event is posted for and check ownership
    club = crud.get_club(db, event_in.club_id)
    authorize(identity, owner_or_admin(club.user_id), "You cannot post events for other clubs")

    # 2. Store the banner before the row is written
    media = await resolve_media_change(
        storage,
        EVENT_BANNER_PREFIX,
        upload=files.get(BANNER_FIELD),
        supplied_url=event_in.banner_image_url if event_in.banner_image_url else UNSET,
    )

    db_event = models.Event(
        club_id=club.id,
        title=event_in.title.strip(),
        description=event_in.description,
        date_time=as_utc(event_in.date_time),
        location=event_in.location,
        banner_image_url=media.url,
        video_url=event_in.video_url,
    )

    try:
        db.add(db_event)
        db.commit()
        db.refresh(db_event)
    except Exception as e:
        db.rollback()
        await discard_object(storage, media.uploaded_key)
        logger.exception("Error creating event: %s", e)
        raise errors.InternalError("Could not create event")

    logger.info("Event %s created for club %s by user %s", db_event.id, club.id, identity.id)
    return schemas.EventResponse(message="Event created successfully", event=crud.map_event_to_response(db_event))


@router.get("", response_model=schemas.EventPage)
async def get_all_events(
    params: PageParams = Depends(page_params),
    date_status: schemas.DateStatus = Query(schemas.DateStatus.ALL, description="upcoming | past | all"),
    club_id: Optional[int] = Query(None, description="Only events of this club"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    """
    Public event listing with pagination.
    Events of clubs that are not approved are only listed for admins.
    """
    try:
        page = paginate(db, crud.events_query(identity, date_status, club_id), params)
        page["items"] = crud.map_events(page["items"])
        return page

    except HTTPException:
        raise

    except Exception as e:
        logger.exception("Exception occured in get all events: %s", e)
        db.rollback()
        raise errors.InternalError("Internal server error getting events")


# get single event
@router.get("/{event_id}", response_model=schemas.EventOut)
async def get_event(
    event_id: int,
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    event = crud.get_visible_event(db, event_id, identity)
    return crud.map_event_to_response(event)


# update event (representative of the owning club or an admin)
@router.put("/{event_id}", response_model=schemas.EventResponse)
async def update_event(
    event_id: int,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: Optional[ObjectStorage] = Depends(get_storage),
):
    # 1. Find Event, ownership goes through its club
    db_event = crud.get_event(db, event_id)
    authorize(identity, owner_or_admin(db_event.club.user_id), "Action not allowed on this event")

    fields, files = await utils.read_payload(request)
    event_update = utils.parse_model(schemas.EventUpdate, fields)
    sent = event_update.model_fields_set

    for required in ("title", "description", "date_time"):
        if required in sent and getattr(event_update, required) in (None, ""):
            raise errors.ValidationFailed(f"{required} cannot be empty")

    # 2. Banner
    media = await resolve_media_change(
        storage,
        EVENT_BANNER_PREFIX,
        upload=files.get(BANNER_FIELD),
        supplied_url=fields["banner_image_url"] if "banner_image_url" in fields else UNSET,
        current_url=db_event.banner_image_url,
    )

    # 3. Update Fields, only what is sent
    if "title" in sent: db_event.title = event_update.title.strip()
    if "description" in sent: db_event.description = event_update.description
    if "date_time" in sent: db_event.date_time = as_utc(event_update.date_time)
    if "location" in sent: db_event.location = event_update.location or None
    if "video_url" in sent: db_event.video_url = event_update.video_url or None
    if media.changed: db_event.banner_image_url = media.url

    try:
        db.commit()
        db.refresh(db_event)
    except Exception as e:
        db.rollback()
        await discard_object(storage, media.uploaded_key)
        logger.exception("Failed to update event %s: %s", event_id, e)
        raise errors.InternalError("Failed to update event")

    await discard_object(storage, media.stale_key)

    logger.info("Event %s updated by user %s (fields: %s)", event_id, identity.id, sorted(sent))
    return schemas.EventResponse(message="Event updated successfully", event=crud.map_event_to_response(db_event))


@router.delete("/{event_id}", response_model=schemas.MessageResponse)
async def delete_event(
    event_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: Optional[ObjectStorage] = Depends(get_storage),
):
    db_event = crud.get_event(db, event_id)
    authorize(identity, owner_or_admin(db_event.club.user_id), "Action not allowed on this event")

    banner_url = db_event.banner_image_url

    try:
        db.delete(db_event)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("Error deleting event %s: %s", event_id, e)
        raise errors.InternalError("Internal server error while deleting the event")

    await discard_url(storage, banner_url)

    logger.info("Event %s deleted by user %s", event_id, identity.id)
    return schemas.MessageResponse(message="Event deleted successfully")
