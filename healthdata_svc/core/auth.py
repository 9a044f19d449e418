"""
Authentication module for Health Data Service API.

Provides API key authentication for securing endpoints and resolves the
requester (user id and role) each request acts for.
"""
import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from core.config import API_KEY
from core.dependencies import get_user_repository
from core.logging_config import set_requester_id
from models.user import Requester
from repositories import UserRepository

logger = logging.getLogger(__name__)

# Header name for API key authentication
API_KEY_HEADER_NAME = "X-API-Key"

# Create the API key header security scheme
api_key_header = APIKeyHeader(
    name=API_KEY_HEADER_NAME,
    auto_error=False,  # We'll handle the error ourselves for better messages
    description="API key for authenticating requests. Include in the X-API-Key header.",
)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> str:
    """
    Verify the API key from the request header.
    
    This dependency should be used on all protected endpoints.
    Uses constant-time comparison to prevent timing attacks.
    
    Args:
        api_key: The API key from the X-API-Key header.
        
    Returns:
        str: The validated API key.
        
    Raises:
        HTTPException: 401 Unauthorized if key is missing.
        HTTPException: 403 Forbidden if key is invalid.
    """
    if api_key is None:
        logger.warning("API request without authentication header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Include it in the X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    
    # Use constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(api_key, API_KEY):
        logger.warning("API request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )
    
    return api_key



# =============================================================================
# REQUESTER IDENTIFICATION
# =============================================================================

# Header carrying the id of the user the calling gateway authenticated
USER_ID_HEADER_NAME = "X-User-Id"

user_id_header = APIKeyHeader(
    name=USER_ID_HEADER_NAME,
    auto_error=False,
    scheme_name="UserId",
    description="Id of the authenticated user the request acts for.",
)


async def get_current_requester(
    user_id: Optional[str] = Security(user_id_header),
    user_repository: UserRepository = Depends(get_user_repository),
) -> Requester:
    """
    Resolve the requester from the X-User-Id header.

    The role always comes from the user directory, never from the request.

    Raises:
        HTTPException: 401 Unauthorized if the header is missing, malformed,
            or names an unknown user.
    """
    if user_id is None:
        logger.warning("API request without user header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing user id. Include it in the {USER_ID_HEADER_NAME} header.",
        )

    try:
        parsed_id = int(user_id)
    except ValueError:
        logger.warning("API request with malformed user id", extra={"user_id": user_id})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user id",
        )

    user = user_repository.resolve_user(parsed_id)
    if user is None:
        logger.warning("API request for unknown user", extra={"user_id": parsed_id})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )

    set_requester_id(user.id)
    return Requester.from_user(user)
