from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette import status

from photodiary.health import check_liveness, check_readiness, perform_health_check
from photodiary.monitoring import get_performance_monitor

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request) -> JSONResponse:
    state = request.app.state
    pipeline = state.pipeline
    monitor = pipeline.monitor if pipeline is not None else get_performance_monitor()
    data = perform_health_check(state.source, monitor, state.started_at)
    code = status.HTTP_200_OK if data["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=data)


@router.get("/health/live")
def liveness(request: Request) -> dict:
    return check_liveness(request.app.state.started_at)


@router.get("/health/ready")
def readiness(request: Request) -> JSONResponse:
    data = check_readiness(request.app.state.source)
    code = status.HTTP_200_OK if data["status"] == "ready" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=data)
