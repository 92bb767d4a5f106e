from typing import Optional
from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sellerdesk.common.constants import request_id_ctx
from sellerdesk.common.utils import build_error, json_error, success_response
from sellerdesk.config.admin_config import admin_config
from sellerdesk.config.settings import config_settings
from sellerdesk.identity.dependencies import bearer_token
from sellerdesk.identity.utils import normalize_email_address, validate_password
from sellerdesk.otp.constants import (CODE_MISMATCH_MESSAGE, CODE_SENT_MESSAGE, FORBIDDEN_MESSAGE,
                                      OTP_COOKIE_NAME, OTP_TTL_SECONDS, RESET_COOKIE_NAME,
                                      SESSION_INVALID_MESSAGE, TOO_MANY_ATTEMPTS_MESSAGE, logger)
from sellerdesk.otp.dependencies import OtpComponents, get_otp_components, resolve_caller_subject
from sellerdesk.otp.models import OtpStartIn, OtpVerifyIn, PasswordResetStartIn, PasswordResetVerifyIn, VerifyFailure
from sellerdesk.rate_limiting.dependencies import rate_limit_dependency
from sellerdesk.schema.otp_session import OtpPurpose

secure_flag = False if admin_config.ENV == "dev" else True

start_rate_limit = rate_limit_dependency(limit=config_settings.OTP_START_RATE_LIMIT,
                                         window=config_settings.OTP_START_RATE_WINDOW, route_key="otp_start")
reset_rate_limit = rate_limit_dependency(limit=config_settings.OTP_START_RATE_LIMIT,
                                         window=config_settings.OTP_START_RATE_WINDOW, route_key="otp_reset_start")

# failure kind -> (status, error code, message, clear cookie)
FAILURE_RESPONSES = {
    VerifyFailure.SESSION_INVALID: (status.HTTP_400_BAD_REQUEST, "SESSION_INVALID", SESSION_INVALID_MESSAGE, True),
    VerifyFailure.FORBIDDEN: (status.HTTP_403_FORBIDDEN, "FORBIDDEN", FORBIDDEN_MESSAGE, False),
    VerifyFailure.CODE_MISMATCH: (status.HTTP_400_BAD_REQUEST, "CODE_MISMATCH", CODE_MISMATCH_MESSAGE, False),
    VerifyFailure.TOO_MANY_ATTEMPTS: (status.HTTP_429_TOO_MANY_REQUESTS, "TOO_MANY_ATTEMPTS", TOO_MANY_ATTEMPTS_MESSAGE, True),
}

otp_router = APIRouter()


def _set_handle_cookie(response: JSONResponse, name: str, handle: str) -> None:
    response.set_cookie(
        key=name,
        value=handle,
        httponly=True,
        secure=secure_flag,
        samesite="Lax",
        path="/",
        max_age=OTP_TTL_SECONDS,
    )


def _clear_handle_cookie(response: JSONResponse, name: str) -> None:
    response.delete_cookie(key=name, path="/", httponly=True, secure=secure_flag, samesite="Lax")


def _check_code_length(code: str, otp: OtpComponents) -> None:
    # the body model only knows it is digits , the length comes from the running policy
    expected = otp.policy.code_length
    if len(code) != expected:
        raise RequestValidationError([{"loc": ("body", "code"), "msg": f"code must be exactly {expected} digits",
                                       "type": "value_error", "input": None}])


def _failure_response(failure: VerifyFailure, cookie_name: str) -> JSONResponse:
    status_code, code, message, clear_cookie = FAILURE_RESPONSES[failure]
    payload = build_error(code=code, details={"message": message}, request_id=request_id_ctx.get(None))
    response = json_error(payload, status_code=status_code)
    if clear_cookie:
        _clear_handle_cookie(response, cookie_name)
    return response


@otp_router.post("/start", dependencies=[Depends(start_rate_limit)])
async def start_email_verification(request: Request, payload: OtpStartIn,
                                   header_token: Optional[str] = Depends(bearer_token),
                                   otp: OtpComponents = Depends(get_otp_components)):

    subject_id = await resolve_caller_subject(payload.caller_token, header_token, otp)

    email = await otp.identity.email_for_subject(subject_id)
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired caller token")

    if payload.destination and payload.destination.strip().lower() != email.lower():
        logger.warning("otp.start.destination_mismatch", extra={"subject_id": subject_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Destination does not match the account email")

    issued = await otp.issuer.issue(subject_id, email, OtpPurpose.EMAIL_VERIFICATION,
                                    user_agent=request.headers.get("user-agent"))

    response = success_response({"ok": True, "message": CODE_SENT_MESSAGE})
    _set_handle_cookie(response, OTP_COOKIE_NAME, issued.handle)
    return response


@otp_router.post("/verify")
async def verify_email_code(payload: OtpVerifyIn,
                            handle: Optional[str] = Cookie(None, alias=OTP_COOKIE_NAME),
                            header_token: Optional[str] = Depends(bearer_token),
                            otp: OtpComponents = Depends(get_otp_components)):

    _check_code_length(payload.code, otp)
    subject_id = await resolve_caller_subject(payload.caller_token, header_token, otp)

    outcome = await otp.verifier.verify(handle, payload.code, subject_id,
                                        purpose=OtpPurpose.EMAIL_VERIFICATION,
                                        effect=otp.binder.mark_verified)
    if not outcome.ok:
        return _failure_response(outcome.failure, OTP_COOKIE_NAME)

    response = success_response({"ok": True, "message": "Email verified."})
    _clear_handle_cookie(response, OTP_COOKIE_NAME)
    return response


@otp_router.post("/password-reset/start", dependencies=[Depends(reset_rate_limit)])
async def start_password_reset(request: Request, payload: PasswordResetStartIn,
                               otp: OtpComponents = Depends(get_otp_components)):

    subject_id = None
    email = None
    try:
        email = normalize_email_address(payload.email)
    except ValueError:
        logger.info("otp.reset.start.bad_email")
    if email:
        subject_id = await otp.identity.subject_for_email(email)

    if subject_id:
        issued = await otp.issuer.issue(subject_id, email, OtpPurpose.PASSWORD_RESET,
                                        user_agent=request.headers.get("user-agent"))
        handle = issued.handle
    else:
        # same status , body and cookie shape as a real account
        handle = await otp.issuer.decoy_handle(OtpPurpose.PASSWORD_RESET,
                                               user_agent=request.headers.get("user-agent"))
        logger.info("otp.reset.start.unknown_account")

    response = success_response({"ok": True, "message": CODE_SENT_MESSAGE})
    _set_handle_cookie(response, RESET_COOKIE_NAME, handle)
    return response


@otp_router.post("/password-reset/verify")
async def verify_password_reset(payload: PasswordResetVerifyIn,
                                handle: Optional[str] = Cookie(None, alias=RESET_COOKIE_NAME),
                                otp: OtpComponents = Depends(get_otp_components)):

    _check_code_length(payload.code, otp)

    # a weak password is rejected before the attempt budget is touched
    is_valid, detail = validate_password(payload.new_password)
    if not is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    subject_id = None
    try:
        subject_id = await otp.identity.subject_for_email(normalize_email_address(payload.email))
    except ValueError:
        logger.info("otp.reset.verify.bad_email")

    async def rotate(subject: str) -> None:
        await otp.binder.rotate_credential(subject, payload.new_password)

    outcome = await otp.verifier.verify(handle, payload.code, subject_id,
                                        purpose=OtpPurpose.PASSWORD_RESET, effect=rotate)
    if not outcome.ok:
        failure = outcome.failure
        if failure == VerifyFailure.FORBIDDEN:
            # must not reveal that the email belongs to some other account
            failure = VerifyFailure.SESSION_INVALID
        return _failure_response(failure, RESET_COOKIE_NAME)

    response = success_response({"ok": True, "message": "Password updated."})
    _clear_handle_cookie(response, RESET_COOKIE_NAME)
    return response
