from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from photodiary.api.deps import get_pipeline, require_session
from photodiary.logging_config import get_logger
from photodiary.models.image import ImageRequest, ImageVariant
from photodiary.services.auth import SessionUser
from photodiary.services.pipeline import ImagePipeline, operation_type

router = APIRouter(tags=["images"])
logger = get_logger(__name__)

# nginx convention for "client closed request"
CLIENT_CLOSED_REQUEST = 499


async def _client_gone(request: Request, identifier: str, stage: str) -> bool:
    if await request.is_disconnected():
        logger.info("client_disconnected", file_id=identifier, abandoned_after=stage)
        return True
    return False


@router.get("/images/{identifier}")
@router.get("/api/google-drive/image/{identifier}", include_in_schema=False)
async def get_image(
    identifier: str,
    request: Request,
    variant: str | None = None,
    size: str | None = None,
    width: str | None = None,
    quality: str | None = None,
    pipeline: ImagePipeline = Depends(get_pipeline),
    user: SessionUser = Depends(require_session),
) -> Response:
    image_request = ImageRequest.build(
        identifier,
        variant=variant or size,
        width=width,
        quality=quality,
        default_quality=pipeline.processor.default_quality,
    )
    logger.debug(
        "image_requested",
        file_id=identifier,
        user_id=user.user_id,
        variant=image_request.variant.value,
        width=image_request.target_width,
        quality=image_request.target_quality,
    )

    with pipeline.monitor.timer(operation_type(image_request.variant)):
        artifact = await run_in_threadpool(pipeline.fetch, image_request)
        if await _client_gone(request, identifier, "fetch"):
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        artifact = await run_in_threadpool(pipeline.normalize, artifact)
        if await _client_gone(request, identifier, "normalize"):
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        artifact = await run_in_threadpool(pipeline.transform, artifact, image_request)
        image_response = pipeline.emit(artifact, image_request.variant)

    return Response(content=image_response.data, headers=image_response.headers)


@router.get("/images/{identifier}/metadata")
def get_image_metadata(
    identifier: str,
    pipeline: ImagePipeline = Depends(get_pipeline),
    user: SessionUser = Depends(require_session),
) -> dict:
    source = pipeline.fetcher.source
    with pipeline.monitor.timer("api-call"):
        metadata = source.get_metadata(identifier)
        permissions = source.list_permissions(identifier) if hasattr(source, "list_permissions") else None

    return {
        "success": True,
        "file": metadata.to_dict(),
        "permissions": permissions,
        "thumbnailUrl": f"/images/{identifier}?variant={ImageVariant.THUMBNAIL.value}",
        "fullUrl": f"/images/{identifier}",
        "directUrl": f"https://drive.google.com/uc?id={identifier}&export=view",
    }
