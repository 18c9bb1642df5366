import json

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response

from order_dashboard.api.deps import get_webhook_relay
from order_dashboard.core.errors import RelayError
from order_dashboard.services.relay import WebhookRelay

router = APIRouter(tags=["webhook"])

BODYLESS_STATUSES = (status.HTTP_204_NO_CONTENT, status.HTTP_205_RESET_CONTENT)


@router.post("/send-webhook")
async def send_webhook(
    request: Request,
    relay: WebhookRelay = Depends(get_webhook_relay)
) -> Response:
    try:
        payload = await request.json()
        result = await relay.forward(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, RelayError) as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": f"Internal Server Error: {e}"}
        )

    if result.status_code in BODYLESS_STATUSES:
        return Response(status_code=result.status_code)
    return JSONResponse(status_code=result.status_code, content=result.body)
