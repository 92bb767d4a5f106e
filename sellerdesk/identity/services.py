from fastapi import HTTPException,status
from sqlalchemy.exc import IntegrityError
from sellerdesk.identity.constants import logger
from sellerdesk.identity.repository import insert_user_with_password, password_hash_for_user, user_by_email
from sellerdesk.identity.utils import create_access_token, dummy_verify, hash_password, verify_password


async def create_user(session,payload):

    existing = await user_by_email(session,payload["email"])
    if existing:
        logger.warning("user.duplicate", extra={"email": payload["email"]})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User with email already exists")

    try:
        user = await insert_user_with_password(session,payload["email"],payload.get("name"),hash_password(payload["password"]))
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning("user.create.integrity_error", extra={"email": payload["email"]})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User with that email already exists")

    logger.info("user.created", extra={"user_public_id": user.public_id, "email": payload["email"]})
    return user.public_id


async def issue_access_token(session,email,password):
    user = await user_by_email(session,email)
    pwd_hash = await password_hash_for_user(session,user.id) if user else None

    if not pwd_hash:
        dummy_verify()     # same hashing cost whether or not the account exists
        logger.warning("auth.user.invalid_credentials", extra={"email": email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not verify_password(password, pwd_hash):
        logger.warning("auth.user.invalid_credentials", extra={"email": email, "user_public_id": user.public_id})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    logger.info("auth.tokens.issued", extra={"user_public_id": user.public_id})
    return create_access_token(subject_id=user.public_id), user
