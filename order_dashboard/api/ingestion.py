import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from order_dashboard.api.deps import get_ingestion_service
from order_dashboard.core.errors import OrderValidationError, StoreError
from order_dashboard.schemas.order import OrderCreatedResponse
from order_dashboard.services.ingestion import OrderIngestionService, parse_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingestion"])


@router.post("/new-order", response_model=OrderCreatedResponse)
async def new_order(
    request: Request,
    service: OrderIngestionService = Depends(get_ingestion_service)
):
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid JSON body"}
        )

    try:
        payload = parse_payload(raw)
    except OrderValidationError as e:
        logger.warning(f"Rejected new order payload: {e.message}")
        content = {"error": e.message}
        if e.details is not None:
            content["details"] = e.details
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)

    try:
        result = await service.ingest(payload)
    except StoreError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to create order", "details": str(e)}
        )

    return OrderCreatedResponse(order_id=result.order_id)
