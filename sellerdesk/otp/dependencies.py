from dataclasses import dataclass
from typing import Callable, Optional
from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sellerdesk.identity.provider import IdentityProvider, LocalIdentityProvider
from sellerdesk.otp.binder import IdentityBinder
from sellerdesk.otp.constants import SWEEP_BATCH_SIZE, logger
from sellerdesk.otp.notifier import DeliveryDispatcher, Notifier, build_notifier
from sellerdesk.otp.policy import OtpPolicy, policy_from_settings
from sellerdesk.otp.repository import SqlSessionStore
from sellerdesk.otp.services import CodeIssuer, Verifier
from sellerdesk.otp.sweeper import SessionSweeper


@dataclass
class OtpComponents:
    policy: OtpPolicy
    store: SqlSessionStore
    sweeper: SessionSweeper
    dispatcher: DeliveryDispatcher
    issuer: CodeIssuer
    verifier: Verifier
    identity: IdentityProvider
    binder: IdentityBinder


def build_otp_components(session_maker: async_sessionmaker[AsyncSession], *,
                         notifier: Optional[Notifier] = None,
                         policy: Optional[OtpPolicy] = None,
                         clock: Optional[Callable[[], int]] = None,
                         identity: Optional[IdentityProvider] = None,
                         batch_size: int = SWEEP_BATCH_SIZE) -> OtpComponents:
    policy = policy or policy_from_settings(clock=clock)
    store = SqlSessionStore(session_maker)
    sweeper = SessionSweeper(store, batch_size=batch_size)
    dispatcher = DeliveryDispatcher(notifier or build_notifier())
    identity = identity or LocalIdentityProvider(session_maker)

    return OtpComponents(
        policy=policy,
        store=store,
        sweeper=sweeper,
        dispatcher=dispatcher,
        issuer=CodeIssuer(store, sweeper, dispatcher, policy),
        verifier=Verifier(store, sweeper, policy),
        identity=identity,
        binder=IdentityBinder(identity),
    )


def get_otp_components(request: Request) -> OtpComponents:
    return request.app.state.otp


async def resolve_caller_subject(body_token: Optional[str], header_token: Optional[str], otp: OtpComponents) -> str:
    """Caller token from the body or the Authorization header -> subject id , 401 otherwise."""
    token = body_token or header_token
    if not token:
        logger.warning("otp.caller.missing_token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing caller token")

    subject_id = await otp.identity.verify_caller_token(token)
    if not subject_id:
        logger.warning("otp.caller.invalid_token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired caller token")
    return subject_id
