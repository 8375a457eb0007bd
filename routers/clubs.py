import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import crud
import errors
import models
import schemas
import utils
from database import get_db
from media import CLUB_LOGO_PREFIX, UNSET, discard_object, discard_url, resolve_media_change
from pagination import PageParams, page_params, paginate
from storage import ObjectStorage, get_storage
from utils import Identity, authorize, get_current_identity, get_optional_identity, has_role, owner_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clubs", tags=["Clubs"])

LOGO_FIELD = "clubLogo"


# register a club (club representatives only, one club each)
@router.post("", response_model=schemas.ClubResponse, status_code=status.HTTP_201_CREATED)
async def create_club(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: Optional[ObjectStorage] = Depends(get_storage),
):
    authorize(
        identity,
        has_role(models.UserRole.CLUB_REPRESENTATIVE),
        "Only club representatives can register clubs",
    )

    fields, files = await utils.read_payload(request)
    club_in = utils.parse_model(schemas.ClubCreate, fields)

    if db.query(models.Club).filter(models.Club.user_id == identity.id).first():
        raise errors.Conflict("This user already has a registered club")
    if db.query(models.Club).filter(models.Club.name == club_in.name).first():
        raise errors.Conflict("A club with this name already exists")

    # the logo is stored before the row is written
    media = await resolve_media_change(
        storage,
        CLUB_LOGO_PREFIX,
        upload=files.get(LOGO_FIELD),
        supplied_url=club_in.logo_url if club_in.logo_url else UNSET,
    )

    club = models.Club(
        user_id=identity.id,
        name=club_in.name,
        description=club_in.description,
        contact_email=club_in.contact_email,
        logo_url=media.url,
        is_approved=request.app.state.settings.clubs_auto_approve,
    )

    try:
        db.add(club)
        db.commit()
        db.refresh(club)
    except IntegrityError:
        db.rollback()
        await discard_object(storage, media.uploaded_key)
        raise errors.Conflict("Club name or representative already registered")
    except Exception as e:
        logger.exception("Error registering club: %s", e)
        db.rollback()
        await discard_object(storage, media.uploaded_key)
        raise errors.InternalError("Internal server error while registering the club")

    logger.info("Club %s registered by user %s", club.id, identity.id)
    return schemas.ClubResponse(message="Club registered successfully", club=crud.map_club_to_response(club))


# get all clubs (approved ones for the public, every club for admins)
@router.get("", response_model=schemas.ClubPage)
async def get_all_clubs(
    params: PageParams = Depends(page_params),
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    try:
        page = paginate(db, crud.clubs_query(identity), params)
        page["items"] = [crud.map_club_to_response(club) for club in page["items"]]
        return page

    except HTTPException:
        raise

    except Exception as e:
        logger.exception("Exception occured in get all clubs: %s", e)
        db.rollback()
        raise errors.InternalError("Internal server error getting clubs")


# the caller's own club, approved or not
@router.get("/mine", response_model=schemas.ClubOut)
async def get_my_club(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    club = db.query(models.Club).filter(models.Club.user_id == identity.id).first()
    if club is None:
        raise errors.NotFound("You have no registered club")
    return crud.map_club_to_response(club)


# get single club
@router.get("/{club_id}", response_model=schemas.ClubOut)
async def get_club(
    club_id: int,
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    club = crud.get_visible_club(db, club_id, identity)
    return crud.map_club_to_response(club)


# club update by the club owner or an admin
@router.put("/{club_id}", response_model=schemas.ClubResponse)
async def update_club(
    club_id: int,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: Optional[ObjectStorage] = Depends(get_storage),
):
    # 1. Fetch the existing Club and check ownership
    club = crud.get_club(db, club_id)
    authorize(identity, owner_or_admin(club.user_id), "Action not allowed on this club")

    fields, files = await utils.read_payload(request)
    club_update = utils.parse_model(schemas.ClubUpdate, fields)
    sent = club_update.model_fields_set

    if "is_approved" in sent:
        if not identity.is_admin:
            raise errors.Forbidden("Only administrators can change the approval status")
        if club_update.is_approved is None:
            raise errors.ValidationFailed("is_approved must be true or false")

    if "name" in sent and not (club_update.name or "").strip():
        raise errors.ValidationFailed("Club name cannot be empty")

    # 2. Resolve the logo before touching the row
    media = await resolve_media_change(
        storage,
        CLUB_LOGO_PREFIX,
        upload=files.get(LOGO_FIELD),
        supplied_url=fields["logo_url"] if "logo_url" in fields else UNSET,
        current_url=club.logo_url,
    )

    # 3. Update fields that were sent
    if "name" in sent:
        club.name = club_update.name.strip()
    if "description" in sent:
        club.description = club_update.description or None
    if "contact_email" in sent:
        club.contact_email = club_update.contact_email
    if media.changed:
        club.logo_url = media.url
    if "is_approved" in sent:
        club.is_approved = club_update.is_approved

    # 4. Commit to Database
    try:
        db.commit()
        db.refresh(club)
    except IntegrityError:
        db.rollback()
        await discard_object(storage, media.uploaded_key)
        raise errors.Conflict("A club with this name already exists")
    except Exception as e:
        logger.exception("Failed to update club %s: %s", club_id, e)
        db.rollback()
        await discard_object(storage, media.uploaded_key)
        raise errors.InternalError("Failed to update club")

    # 5. The row no longer points at the old logo
    await discard_object(storage, media.stale_key)

    logger.info("Club %s updated by user %s (fields: %s)", club.id, identity.id, sorted(sent))
    return schemas.ClubResponse(message="Club updated successfully", club=crud.map_club_to_response(club))


@router.delete("/{club_id}", response_model=schemas.MessageResponse)
async def delete_club(
    club_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: Optional[ObjectStorage] = Depends(get_storage),
):
    club = crud.get_club(db, club_id)
    authorize(identity, owner_or_admin(club.user_id), "Action not allowed on this club")

    # events (and their attendances) go with the club
    media_urls = [club.logo_url] + [event.banner_image_url for event in club.events]

    try:
        db.delete(club)
        db.commit()
    except Exception as e:
        logger.exception("Error deleting club %s: %s", club_id, e)
        db.rollback()
        raise errors.InternalError("Internal server error while deleting the club")

    for url in media_urls:
        await discard_url(storage, url)

    logger.info("Club %s deleted by user %s", club_id, identity.id)
    return schemas.MessageResponse(message="Club deleted successfully")
