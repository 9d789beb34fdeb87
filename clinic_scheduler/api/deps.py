from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from ..core.database import get_db
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..services.schedule_service import ScheduleService

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials
    
    # Verify token
    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")
    
    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")
    
    if not token_payload.sub or not token_payload.role:
        raise AuthenticationError("Invalid token payload")
    
    return token_payload

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        current_user: TokenPayload = Depends(get_current_user)
    ) -> TokenPayload:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user
    
    return role_checker

# Specific role dependencies
async def get_admin_user(
    current_user: TokenPayload = Depends(require_role([UserRole.ADMIN]))
) -> TokenPayload:
    """Require admin role."""
    return current_user

async def get_doctor_user(
    current_user: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN]))
) -> TokenPayload:
    """Require doctor or admin role."""
    return current_user

def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)
