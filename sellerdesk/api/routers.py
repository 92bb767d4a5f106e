from fastapi import APIRouter
from sellerdesk.api import version_prefix
from sellerdesk.common.routes import home_router
from sellerdesk.identity.routes import auth_router
from sellerdesk.otp.routes import otp_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(auth_router, prefix="/auth",tags=["auth"])
public_routers.include_router(otp_router, prefix="/otp",tags=["otp"])
public_routers.include_router(home_router,tags=["home"])
