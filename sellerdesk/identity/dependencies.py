from typing import Optional
from fastapi import Header, HTTPException,status
from sellerdesk.identity.constants import logger
from sellerdesk.identity.models import SignupIn
from sellerdesk.identity.utils import normalize_email_address, validate_password


async def signup_validation(payload: SignupIn) -> dict:
    # 1) validate & normalize email
    try:
        email = normalize_email_address(payload.email)
    except ValueError as e:
        logger.warning("signup.validation.email_invalid", extra={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid email: {e}")

    is_valid, detail = validate_password(payload.password)
    if not is_valid:
        logger.warning("signup.validation.password_invalid", extra={"email": email, "reason": detail})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    
    return {"email": email, "password": payload.password, "name": payload.name}


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
