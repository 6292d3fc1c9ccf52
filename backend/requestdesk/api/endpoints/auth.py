"""
Authentication endpoints.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select, func

from requestdesk.api.deps import DBSession, CurrentUser
from requestdesk.core.exceptions import ValidationError
from requestdesk.core.security import verify_password, get_password_hash, create_access_token
from requestdesk.models.organization import Organization
from requestdesk.models.user import User, UserRole
from requestdesk.schemas.auth import Token, LoginRequest, SignupRequest
from requestdesk.schemas.user import CurrentUserResponse
from requestdesk.services.access_policy import resolve_capabilities

router = APIRouter()
logger = logging.getLogger(__name__)


async def _authenticate(db, email: str, password: str) -> User:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    return user


def _issue_token(user: User) -> Token:
    # Create token with organization context
    additional_claims = {"org_id": user.organization_id}
    return Token(access_token=create_access_token(user.id, additional_claims=additional_claims))


@router.post("/login", response_model=Token)
async def login(
    db: DBSession,
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> Any:
    """
    OAuth2 compatible token login.
    """
    user = await _authenticate(db, form_data.username, form_data.password)
    return _issue_token(user)


@router.post("/login/json", response_model=Token)
async def login_json(
    db: DBSession,
    login_data: LoginRequest,
) -> Any:
    """
    JSON-based login endpoint.
    """
    user = await _authenticate(db, login_data.email, login_data.password)
    return _issue_token(user)


@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(
    db: DBSession,
    signup_data: SignupRequest,
) -> Any:
    """
    Self-service signup as a requester.

    The organization is the one registered for the email domain; when the
    domain is unknown, ``organization_slug`` must name an active organization.
    """
    email = signup_data.email.lower()
    existing = await db.execute(select(User).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none():
        raise ValidationError("Email already registered", errors={"email": "Email already registered"})

    domain = email.rsplit("@", 1)[-1]
    result = await db.execute(
        select(Organization)
        .where(func.lower(Organization.domain) == domain)
        .where(Organization.is_active == True)  # noqa: E712
    )
    organization = result.scalars().first()

    if organization is None and signup_data.organization_slug:
        result = await db.execute(
            select(Organization)
            .where(Organization.slug == signup_data.organization_slug.strip().lower())
            .where(Organization.is_active == True)  # noqa: E712
        )
        organization = result.scalar_one_or_none()

    if organization is None:
        raise ValidationError(
            "No organization found for this email",
            errors={"organization": "No organization matches this email domain or slug"},
        )

    user = User(
        email=email,
        hashed_password=get_password_hash(signup_data.password),
        first_name=signup_data.first_name,
        last_name=signup_data.last_name,
        role=UserRole.REQUESTER,
        organization_id=organization.id,
        last_login=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("User %s signed up into organization %s", user.id, organization.id)
    return _issue_token(user)


@router.get("/user", response_model=CurrentUserResponse)
async def get_current_user_info(db: DBSession, current_user: CurrentUser) -> Any:
    """
    Get current user information with organization and capabilities.
    """
    organization_name = None
    if current_user.organization_id is not None:
        organization = await db.get(Organization, current_user.organization_id)
        organization_name = organization.name if organization else None

    response = CurrentUserResponse.model_validate(current_user)
    response.organization_name = organization_name
    response.capabilities = sorted(c.value for c in resolve_capabilities(current_user))
    return response
