# seed_db.py
import datetime
import logging

from config import Settings
from database import Database
import models, utils

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "password123"

# --- MOCK DATA ---
MOCK_USERS = [
    {"name": "Campus Admin", "email": "admin@university.edu", "role": models.UserRole.ADMIN},
    {"name": "Tech Rep", "email": "tech@university.edu", "role": models.UserRole.CLUB_REPRESENTATIVE},
    {"name": "Jazz Rep", "email": "jazz@university.edu", "role": models.UserRole.CLUB_REPRESENTATIVE},
    {"name": "Chess Rep", "email": "chess@university.edu", "role": models.UserRole.CLUB_REPRESENTATIVE},
    {"name": "Sam Student", "email": "student@university.edu", "role": models.UserRole.STUDENT},
]

MOCK_CLUBS = [
    {
        "owner": "tech@university.edu",
        "name": "Tech & Coding Society",
        "description": "We build cool stuff with code. Join us for hackathons, workshops, and pizza nights.",
        "contact_email": "tech@university.edu",
        "is_approved": True,  # Approved club
    },
    {
        "owner": "jazz@university.edu",
        "name": "University Jazz Band",
        "description": "Smooth jazz and good vibes. We perform every Tuesday at the student center.",
        "contact_email": "jazz@university.edu",
        "is_approved": True,  # Approved club
    },
    {
        "owner": "chess@university.edu",
        "name": "Grandmaster Chess Club",
        "description": "Strategy, tactics, and tournaments. Beginners welcome!",
        "contact_email": "chess@university.edu",
        "is_approved": False,  # Pending - good for testing the admin flow
    },
]

# days relative to "now" so there is always something upcoming and something past
MOCK_EVENTS = [
    {"club": "Tech & Coding Society", "title": "Intro to Python Workshop", "days": 3,
     "description": "Learn the basics of Python programming. No prior experience needed!", "location": "Room 304"},
    {"club": "Tech & Coding Society", "title": "Hackathon Kickoff", "days": -10,
     "description": "24 hours of building. Teams of up to four.", "location": "Engineering Hall"},
    {"club": "University Jazz Band", "title": "Tuesday Jam Session", "days": 7,
     "description": "Bring your instrument or just come listen.", "location": "Student Center"},
    {"club": "Grandmaster Chess Club", "title": "Blitz Tournament", "days": 5,
     "description": "Five minute games, bring your own clock.", "location": "Library, 2nd floor"},
]


def seed_data(db) -> None:
    if db.query(models.User).first():
        logger.info("Database already has users, skipping seed")
        return

    users = {}
    for data in MOCK_USERS:
        user = models.User(
            name=data["name"],
            email=data["email"],
            password_hash=utils.hash_password(DEFAULT_PASSWORD),
            role=data["role"],
        )
        db.add(user)
        users[data["email"]] = user
    db.flush()

    clubs = {}
    for data in MOCK_CLUBS:
        club = models.Club(
            user_id=users[data["owner"]].id,
            name=data["name"],
            description=data["description"],
            contact_email=data["contact_email"],
            is_approved=data["is_approved"],
        )
        db.add(club)
        clubs[data["name"]] = club
    db.flush()

    now = utils.utcnow().replace(minute=0, second=0, microsecond=0)
    for data in MOCK_EVENTS:
        db.add(models.Event(
            club_id=clubs[data["club"]].id,
            title=data["title"],
            description=data["description"],
            date_time=now + datetime.timedelta(days=data["days"]),
            location=data["location"],
        ))

    db.commit()
    logger.info("Seeded %d users, %d clubs, %d events", len(MOCK_USERS), len(MOCK_CLUBS), len(MOCK_EVENTS))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    database = Database(Settings.from_env().database_url)
    database.create_all()

    db = database.SessionLocal()
    try:
        seed_data(db)
    finally:
        db.close()
        database.dispose()
