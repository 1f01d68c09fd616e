from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from payhook.dto.webhook import WebhookAck
from payhook.services.persistence import PersistenceAdapter, get_persistence_adapter
from payhook.services.webhook_service import WebhookResult, WebhookService
from payhook.utils.config import Settings, get_settings
from payhook.utils.enums import ProviderTag

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])


def get_service(
    adapter: PersistenceAdapter = Depends(get_persistence_adapter),
    app_settings: Settings = Depends(get_settings),
) -> WebhookService:
    return WebhookService(adapter, settings=app_settings)


def _to_response(result: WebhookResult) -> JSONResponse:
    return JSONResponse(
        status_code=result.status_code,
        content=result.ack.model_dump(mode="json", exclude_none=True),
    )


@router.post("/paddle", response_model=WebhookAck)
async def receive_paddle_webhook(
    request: Request,
    service: WebhookService = Depends(get_service),
    app_settings: Settings = Depends(get_settings),
) -> JSONResponse:
    # Raw bytes, not a parsed model: the signature covers exactly what was sent.
    raw_body = await request.body()
    result = await service.ingest(
        ProviderTag.PADDLE,
        raw_body,
        content_type=request.headers.get("content-type"),
        signature=request.headers.get(app_settings.paddle_signature_header),
    )
    return _to_response(result)


@router.post("/mpesa", response_model=WebhookAck)
async def receive_mpesa_callback(
    request: Request,
    token: str | None = Query(default=None),
    service: WebhookService = Depends(get_service),
) -> JSONResponse:
    raw_body = await request.body()
    result = await service.ingest(
        ProviderTag.MPESA,
        raw_body,
        content_type=request.headers.get("content-type"),
        signature=token,
    )
    return _to_response(result)
