from fastapi import Depends, Request

from photodiary.services.auth import SessionAuthService, SessionUser
from photodiary.services.pipeline import ImagePipeline


def get_pipeline(request: Request) -> ImagePipeline:
    return request.app.state.pipeline


def get_auth_service(request: Request) -> SessionAuthService:
    return request.app.state.auth_service


def require_session(request: Request, auth: SessionAuthService = Depends(get_auth_service)) -> SessionUser:
    return auth.authenticate(request.cookies)
