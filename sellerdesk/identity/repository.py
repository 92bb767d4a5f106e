from sqlalchemy import select, update
from sellerdesk.common.utils import now
from sellerdesk.config.settings import config_settings
from sellerdesk.schema.full_schema import Credential, CredentialType, Users


async def user_by_email(session,email):
    stmt=select(Users.id,Users.public_id,Users.email,Users.email_verified_at).where(Users.email==email,Users.deleted_at.is_(None))
    result=await session.execute(stmt)
    return result.first()

async def user_by_public_id(session,public_id):
    stmt=select(Users.id,Users.public_id,Users.email,Users.email_verified_at).where(Users.public_id==public_id,Users.deleted_at.is_(None))
    result=await session.execute(stmt)
    return result.first()

async def password_hash_for_user(session,user_id):
    stmt= select(Credential.password_hash).where(Credential.user_id == user_id, Credential.type == CredentialType.PASSWORD,
                                                 Credential.revoked_at.is_(None))
    return (await session.execute(stmt)).scalar_one_or_none()


async def insert_user_with_password(session,email,name,password_hash):
    user = Users(email=email, name=name)
    session.add(user)
    await session.flush()

    cred = Credential(user_id=user.id, type=CredentialType.PASSWORD, provider=config_settings.SELF_PROVIDER, password_hash=password_hash)
    session.add(cred)
    await session.flush()
    return user


async def mark_email_verified(session,user_id):
    # keeps the first verification time , re-running is a no-op
    stmt = (update(Users)
            .where(Users.id == user_id, Users.email_verified_at.is_(None))
            .values(email_verified_at=now(), updated_at=now())
            .execution_options(synchronize_session=False))
    res = await session.execute(stmt)
    return res.rowcount or 0


async def upsert_password_credential(session,user_id,password_hash):
    stmt = select(Credential.id).where(Credential.user_id == user_id, Credential.provider == config_settings.SELF_PROVIDER)
    cred_id = (await session.execute(stmt)).scalar_one_or_none()

    if cred_id is None:
        session.add(Credential(user_id=user_id, type=CredentialType.PASSWORD,
                               provider=config_settings.SELF_PROVIDER, password_hash=password_hash))
        return

    await session.execute(
        update(Credential)
        .where(Credential.id == cred_id)
        .values(password_hash=password_hash, type=CredentialType.PASSWORD, revoked_at=None, updated_at=now())
        .execution_options(synchronize_session=False)
    )
