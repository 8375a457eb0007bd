import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from slowapi import Limiter
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import errors
import models
import schemas
import utils
from database import get_db

logger = logging.getLogger(__name__)

REGISTER_LIMIT = "5/minute"
LOGIN_LIMIT = "10/minute"


def register_user(
    request: Request,
    response: Response,
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
):
    settings = request.app.state.settings

    if user_in.role == models.UserRole.ADMIN and not settings.allow_admin_signup:
        raise errors.Forbidden("Admin accounts cannot be created through signup")

    email = user_in.email.lower()

    try:
        # 1. Check if email already exists
        existing_user = db.query(models.User).filter_by(email=email).first()
        if existing_user:
            raise errors.Conflict("Email already registered")

        # 2. Create the Database Object with a hashed password
        new_user = models.User(
            name=user_in.name.strip(),
            email=email,
            password_hash=utils.hash_password(user_in.password),
            role=user_in.role,
        )

        # 3. Add & Commit
        db.add(new_user)
        db.commit()
        db.refresh(new_user)  # Reloads the object with the generated ID

        logger.info("Registered user %s with role %s", new_user.id, new_user.role.value)
        return schemas.RegisterResponse(message="User registered successfully", user=schemas.UserOut.model_validate(new_user))

    except HTTPException:
        raise

    except IntegrityError:
        # two signups with the same email raced past the lookup
        db.rollback()
        raise errors.Conflict("Email already registered")

    except Exception as e:
        logger.exception("Exception occured in register: %s", e)
        db.rollback()
        raise errors.InternalError("Failed to create user")


def login_user(
    request: Request,
    response: Response,
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    settings = request.app.state.settings

    try:
        # 1. Find the user
        user = db.query(models.User).filter_by(email=credentials.email.strip().lower()).first()

        # 2. Verify User and Password
        if not user or not utils.verify_password(credentials.password, user.password_hash):
            raise errors.Unauthenticated("Incorrect credentials")

        # 3. Create Token
        identity = utils.Identity(id=user.id, email=user.email, role=user.role)
        token = utils.create_access_token(identity, settings.jwt_secret_key, settings.jwt_expire_minutes)

        return schemas.LoginResponse(message="Login successful", token=token, user=schemas.UserOut.model_validate(user))

    except HTTPException:
        raise

    except Exception as e:
        logger.exception("Exception occured in login: %s", e)
        db.rollback()
        raise errors.InternalError("Internal Server Error, failed to log in")


# after login, returns current user
def read_users_me(
    identity: utils.Identity = Depends(utils.get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Returns the currently logged-in user.
    The identity is injected automatically by checking the JWT token.
    """
    user = db.get(models.User, identity.id)
    if user is None:
        raise errors.NotFound("User not found")

    return schemas.MeResponse(message="Authenticated user data", user=schemas.UserOut.model_validate(user))


def build_router(limiter: Limiter) -> APIRouter:
    """
    Auth routes with register/login limited by the app's own limiter.
    The handlers are plain functions, so hashing and session calls run in the threadpool.
    """
    router = APIRouter(prefix="/api/auth", tags=["Auth"])

    router.add_api_route(
        "/register",
        limiter.limit(REGISTER_LIMIT)(register_user),
        methods=["POST"],
        response_model=schemas.RegisterResponse,
        status_code=status.HTTP_201_CREATED,
    )
    router.add_api_route(
        "/login",
        limiter.limit(LOGIN_LIMIT)(login_user),
        methods=["POST"],
        response_model=schemas.LoginResponse,
    )
    router.add_api_route("/me", read_users_me, methods=["GET"], response_model=schemas.MeResponse)

    return router
