"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Callable, Generator, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.accounts.models import Account, AccessLevel, Official, Role
from ..core.accounts.security import (
    AuthenticationError,
    TokenExpiredError,
    decode_access_token,
)
from ..infrastructure.email.client import EmailClient, create_email_client
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    create_snowflake_connection,
)
from ..infrastructure.snowflake.repositories import (
    AccountRepository,
    AssessmentRepository,
    GestureAnalysisRepository,
    OtpRepository,
    VideoRepository,
)
from ..infrastructure.snowflake.repositories.documents import (
    SnowflakeConfig,
    SnowflakeConnection,
)
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..infrastructure.video.processor import VideoProcessor, create_video_processor

logger = logging.getLogger(__name__)

# Bearer token security scheme. auto_error=False so we can return our own 401.
bearer_scheme = HTTPBearer(auto_error=False)

# Global mock instances (shared across requests for testing)
_mock_snowflake_connection: Optional[MockSnowflakeConnection] = None
_mock_storage_client: Optional[StorageClient] = None
_mock_email_client: Optional[EmailClient] = None
_mock_video_processor: Optional[VideoProcessor] = None


def reset_mock_clients() -> None:
    """Drop the shared mocks so the next request starts from empty state."""
    global _mock_snowflake_connection, _mock_storage_client
    global _mock_email_client, _mock_video_processor

    _mock_snowflake_connection = None
    _mock_storage_client = None
    _mock_email_client = None
    _mock_video_processor = None


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

def get_snowflake_connection(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide a database connection for the duration of one request.

    This is a generator function (yields instead of returns) because
    we need to manage the connection lifecycle. FastAPI caches a
    dependency per request, so every repository used by one request
    shares this connection.

    In mock mode, we reuse the same connection across requests
    so that data persists during the testing session.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection for session")
        yield _mock_snowflake_connection
        return

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    with create_snowflake_connection(config=config) as conn:
        yield conn


ConnectionDep = Annotated[SnowflakeConnection, Depends(get_snowflake_connection)]


def get_account_repository(connection: ConnectionDep) -> AccountRepository:
    return AccountRepository(connection)


def get_video_repository(connection: ConnectionDep) -> VideoRepository:
    return VideoRepository(connection)


def get_assessment_repository(connection: ConnectionDep) -> AssessmentRepository:
    return AssessmentRepository(connection)


def get_gesture_analysis_repository(connection: ConnectionDep) -> GestureAnalysisRepository:
    return GestureAnalysisRepository(connection)


def get_otp_repository(connection: ConnectionDep) -> OtpRepository:
    return OtpRepository(connection)


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide storage client for video and thumbnail uploads.

    Mock mode gives a shared in-memory client. Otherwise R2 with local disk
    as fallback when R2 credentials are configured, local disk alone when not.
    """
    global _mock_storage_client

    if settings.r2_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client

    config = None
    if settings.r2_configured:
        config = StorageConfig(
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
            bucket_name=settings.r2_bucket_name,
            endpoint_url=settings.r2_endpoint,
            public_url=settings.r2_public_url,
        )

    return create_storage_client(
        config=config,
        local_root=settings.local_storage_dir,
        local_max_size_bytes=settings.local_max_upload_size_mb * 1024 * 1024,
    )


def get_email_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> EmailClient:
    global _mock_email_client

    if settings.email_mock_mode:
        if _mock_email_client is None:
            _mock_email_client = create_email_client(mock_mode=True)
            logger.info("Created shared mock email client for session")
        return _mock_email_client

    return create_email_client(sender=settings.email_from, region=settings.ses_region)


def get_video_processor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> VideoProcessor:
    global _mock_video_processor

    if settings.video_processor_mock_mode:
        if _mock_video_processor is None:
            _mock_video_processor = create_video_processor(mock_mode=True)
        return _mock_video_processor

    return create_video_processor()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_account(
    settings: Annotated[Settings, Depends(get_settings)],
    accounts: Annotated[AccountRepository, Depends(get_account_repository)],
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Account:
    """
    Resolve the caller from the `Authorization: Bearer <token>` header.

    The token only carries id and role; the account is loaded on every
    request so deactivation takes effect immediately.

    Raises 401 if the token is missing, invalid, expired, or points at an
    account that no longer exists or is deactivated.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("No token provided, authorization denied")

    try:
        claims = decode_access_token(
            credentials.credentials,
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
    except TokenExpiredError:
        raise _unauthorized("Token has expired")
    except AuthenticationError:
        raise _unauthorized("Invalid token")

    account = accounts.find(claims.account_id)
    if account is None or account.role != claims.role:
        logger.warning(
            "Token for unknown account",
            extra={"account_id": str(claims.account_id), "role": claims.role.value}
        )
        raise _unauthorized("Token is not valid - user not found")

    if not account.is_active:
        raise _unauthorized("User account is deactivated")

    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]


def require_roles(*roles: Role) -> Callable[..., Account]:
    """
    Dependency factory restricting a route to some roles.

    Usage:
        @router.get("/x")
        async def x(account: Annotated[Account, Depends(require_roles(Role.COACH))]):
    """
    allowed = ", ".join(role.value for role in roles)

    async def dependency(account: CurrentAccount) -> Account:
        if account.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {allowed}",
            )
        return account

    return dependency


def require_access_level(*levels: AccessLevel) -> Callable[..., Account]:
    """Dependency factory for routes limited to officials with given clearance."""
    allowed = ", ".join(level.value for level in levels)

    async def dependency(account: CurrentAccount) -> Account:
        if not isinstance(account, Official):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. SAI Official access required",
            )
        if account.access_level not in levels:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient access level. Required: {allowed}",
            )
        return account

    return dependency


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
AccountRepositoryDep = Annotated[AccountRepository, Depends(get_account_repository)]
VideoRepositoryDep = Annotated[VideoRepository, Depends(get_video_repository)]
AssessmentRepositoryDep = Annotated[AssessmentRepository, Depends(get_assessment_repository)]
GestureAnalysisRepositoryDep = Annotated[
    GestureAnalysisRepository, Depends(get_gesture_analysis_repository)
]
OtpRepositoryDep = Annotated[OtpRepository, Depends(get_otp_repository)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
EmailClientDep = Annotated[EmailClient, Depends(get_email_client)]
VideoProcessorDep = Annotated[VideoProcessor, Depends(get_video_processor)]

AthleteAccount = Annotated[Account, Depends(require_roles(Role.ATHLETE))]
CoachAccount = Annotated[Account, Depends(require_roles(Role.COACH))]
OfficialAccount = Annotated[Account, Depends(require_roles(Role.OFFICIAL))]
StaffAccount = Annotated[Account, Depends(require_roles(Role.COACH, Role.OFFICIAL))]
