from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import  AsyncSession
from sellerdesk.common.utils import success_response
from sellerdesk.db.dependencies import get_session
from sellerdesk.identity.constants import ACCESS_TOKEN_TTL_SECONDS, logger
from sellerdesk.identity.dependencies import signup_validation
from sellerdesk.identity.models import SignIn
from sellerdesk.identity.services import create_user, issue_access_token
from sellerdesk.identity.utils import normalize_email_address

auth_router = APIRouter()


@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup_user(payload: dict = Depends(signup_validation), session: AsyncSession = Depends(get_session)):
    
    logger.info("signup.attempt", extra={"email": payload.get("email")})
    
    public_id = await create_user(session,payload)
    logger.info("signup.success", extra={"email": payload.get("email")})
    return success_response({"message": "User created successfully.", "user_public_id": public_id}, 201)


@auth_router.post("/login")
async def login_user(payload: SignIn, session: AsyncSession = Depends(get_session)):

    try:
        email = normalize_email_address(payload.email)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    logger.info("login.attempt", extra={"email": email})
    access, user = await issue_access_token(session, email, payload.password)

    resp = {"access_token": access, "token_type": "bearer", "expires_in": ACCESS_TOKEN_TTL_SECONDS,
            "email_verified": user.email_verified_at is not None}

    logger.info("login.success", extra={"email": email})
    return success_response(resp, 200)
