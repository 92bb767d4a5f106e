from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from sellerdesk.common import logger
from sellerdesk.common.utils import build_error, json_error
from sellerdesk.common.constants import request_id_ctx


class StoreError(Exception):
    """Raised when the session store backend fails or returns an unreadable record."""


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)
    body = {"message": "Internal Server Error"}

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "request_id": rid,
        },
        exc_info=exc,
    )

    payload = build_error(code="SERVER_ERROR", details=body, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def store_exception_handler(request: Request, exc: StoreError):
    rid = request_id_ctx.get(None)
    logger.error(
        "store.failure",
        extra={
            "path": request.url.path,
            "reason": str(exc),
            "request_id": rid,
        },
        exc_info=exc,
    )

    payload = build_error(code="SERVER_ERROR", details={"message": "Internal Server Error"}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)

    # field + message only , submitted values are never echoed back
    fields = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "cookie", "header")]
        fields.append({"field": ".".join(loc) or None, "message": err.get("msg")})

    logger.warning(
        "request.validation_failed",
        extra={
            "fields": [f["field"] for f in fields],
            "path": request.url.path,
            "request_id": rid,
        },
    )

    payload = build_error(code="VALIDATION_ERROR", details={"message":"invalid request","fields":fields}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_400_BAD_REQUEST)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)

    error_code = f"HTTP_{exc.status_code}"
    message = exc.detail

    payload = build_error(code=error_code, details={"message":message}, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        StoreError,
        store_exception_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )
