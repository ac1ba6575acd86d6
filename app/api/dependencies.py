# ============================================================================
# FILE: app/api/dependencies.py
# Session authentication and service dependencies
# ============================================================================
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from uuid import UUID

from app.config.database import get_db
from app.config.settings import settings
from app.models.user import User
from app.services.delivery.registry import DeliveryClientRegistry
from app.services.integration.integration_service import IntegrationService
from app.services.webhook.dispatcher import WebhookDispatcher
from app.services.webhook.webhook_log_service import WebhookLogService
from app.services.webhook.webhook_service import WebhookService

# ============================================================================
# Security Schemes
# ============================================================================

# Dashboard sessions normally arrive as the session cookie; the bearer
# header is accepted for API clients and tests
jwt_security = HTTPBearer(
    scheme_name="JWT Bearer Token",
    description="Enter your JWT access token",
    auto_error=False
)


# ============================================================================
# JWT Token Functions
# ============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary with claims (should include 'sub' with user_id)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access"
    })

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def verify_access_token(token: str) -> dict:
    """
    Verify and decode a JWT access token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Could not validate credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


# ============================================================================
# Session Authentication Dependencies
# ============================================================================

async def get_current_user(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(jwt_security),
        db: AsyncSession = Depends(get_db)
) -> User:
    """
    Resolve the signed-in user from the session cookie or a bearer token.

    Raises:
        HTTPException 401: If the token is missing, invalid, or the user is gone
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if credentials:
        token = credentials.credentials

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(token)

    try:
        user_id = UUID(payload.get("sub") or "")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    return user


async def require_admin(
        current_user: User = Depends(get_current_user)
) -> User:
    """Dependency that requires a platform admin"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


# ============================================================================
# Service Dependencies
# ============================================================================

def get_registry(request: Request) -> DeliveryClientRegistry:
    """Delivery client registry created at startup"""
    registry = getattr(request.app.state, "delivery_registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Delivery registry not initialized"
        )
    return registry


def get_integration_service(
        db: AsyncSession = Depends(get_db),
        registry: DeliveryClientRegistry = Depends(get_registry)
) -> IntegrationService:
    return IntegrationService(db, registry)


def get_webhook_service(db: AsyncSession = Depends(get_db)) -> WebhookService:
    return WebhookService(db)


def get_webhook_log_service(db: AsyncSession = Depends(get_db)) -> WebhookLogService:
    return WebhookLogService(db)


async def get_dispatcher(
        db: AsyncSession = Depends(get_db),
        registry: DeliveryClientRegistry = Depends(get_registry)
):
    dispatcher = WebhookDispatcher(db, registry)
    try:
        yield dispatcher
    finally:
        await dispatcher.close()
