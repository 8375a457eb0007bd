from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum

from models import UserRole


def _blank_to_none(value):
    # multipart forms send "" for untouched inputs
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# --- USER SCHEMAS ---

# What the frontend sends to US
class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole


class LoginRequest(BaseModel):
    email: str
    password: str


# What WE send back to the frontend (No password!)
class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    created_at: Optional[datetime] = None

    class Config:
        # This tells Pydantic to read data even if it's an ORM object (not just a dict)
        from_attributes = True


class RegisterResponse(BaseModel):
    message: str
    user: UserOut


class LoginResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    user: UserOut


class MeResponse(BaseModel):
    message: str
    user: UserOut


class MessageResponse(BaseModel):
    message: str


# --- PAGINATION ---

class PageMeta(BaseModel):
    totalItems: int
    totalPages: int
    currentPage: int
    itemsPerPage: int


# --- CLUB SCHEMAS ---

class ClubCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    logo_url: Optional[str] = None

    @field_validator("description", "contact_email", "logo_url", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)


# club update by the owner or an admin; only fields that were sent are applied
class ClubUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    logo_url: Optional[str] = None
    is_approved: Optional[bool] = None

    @field_validator("contact_email", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)


class ClubOut(BaseModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    contact_email: Optional[str] = None
    logo_url: Optional[str] = None
    is_approved: bool
    representative_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClubPage(PageMeta):
    items: List[ClubOut]


class ClubResponse(BaseModel):
    message: str
    club: ClubOut


# --- EVENT SCHEMAS ---

class DateStatus(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"
    ALL = "all"


class EventCreate(BaseModel):
    club_id: int
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    date_time: datetime
    location: Optional[str] = None
    video_url: Optional[str] = None
    banner_image_url: Optional[str] = None

    @field_validator("location", "video_url", "banner_image_url", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    date_time: Optional[datetime] = None
    location: Optional[str] = None
    video_url: Optional[str] = None
    banner_image_url: Optional[str] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class EventOut(BaseModel):
    id: int
    club_id: int
    club_name: Optional[str] = None
    title: str
    description: str
    date_time: datetime
    location: Optional[str] = None
    banner_image_url: Optional[str] = None
    video_url: Optional[str] = None

    class Config:
        from_attributes = True


class EventPage(PageMeta):
    items: List[EventOut]


class EventResponse(BaseModel):
    message: str
    event: EventOut


# --- ATTENDANCE SCHEMAS ---

class AttendanceOut(BaseModel):
    id: int
    user_id: int
    event_id: int
    registration_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttendanceResponse(BaseModel):
    message: str
    attendance: AttendanceOut


class AttendeeOut(BaseModel):
    id: int
    name: str
    email: str
    registration_time: Optional[datetime] = None


class MyEventOut(BaseModel):
    id: int
    club_id: int
    club_name: str
    title: str
    description: str
    date_time: datetime
    location: Optional[str] = None
    banner_image_url: Optional[str] = None
    registration_time: Optional[datetime] = None
