from __future__ import annotations

import logging
from typing import Any, Dict, List

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .configuration import get_settings
from .errors import GatewayError, MissingFieldError
from .gateway import Gateway
from .models import ErrorResponse, ListSummary, ShippingSubmission, SubmitResponse

settings = get_settings()
logging.basicConfig(level=settings.server.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Shipping Gateway API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

gateway = Gateway.from_settings(settings)


def get_gateway() -> Gateway:
    return gateway


def _failure(summary: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, GatewayError):
        status_code, details = exc.status_code, exc.details
    else:
        status_code, details = 500, str(exc)
    logger.error(f"{summary}: {details}")
    body = ErrorResponse(error=summary, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/item/{item_id}")
async def get_item(item_id: str, gw: Gateway = Depends(get_gateway)) -> Any:
    try:
        return await gw.fetch_item(item_id)
    except Exception as exc:  # noqa: BLE001
        return _failure("Failed to fetch SharePoint item", exc)


@app.get("/api/lists", response_model=List[ListSummary])
async def get_lists(gw: Gateway = Depends(get_gateway)) -> Any:
    try:
        return await gw.list_lists()
    except Exception as exc:  # noqa: BLE001
        return _failure("Failed to fetch SharePoint lists", exc)


@app.get("/api/item/{item_id}/clients")
async def get_item_clients(item_id: str, gw: Gateway = Depends(get_gateway)) -> Any:
    try:
        return await gw.fetch_related_items(item_id)
    except MissingFieldError as exc:
        return _failure(f"{exc.field_name} field not found in booking item", exc)
    except Exception as exc:  # noqa: BLE001
        return _failure("Failed to fetch client items by customer", exc)


@app.post("/api/submit-shipping", response_model=SubmitResponse)
async def submit_shipping(submission: ShippingSubmission, gw: Gateway = Depends(get_gateway)) -> Any:
    try:
        await gw.submit_shipping(submission)
    except Exception as exc:  # noqa: BLE001
        return _failure("Failed to send email with PDF", exc)
    return SubmitResponse(message="Form submitted and email sent.")


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_level=settings.server.log_level.lower())


if __name__ == "__main__":
    run()
