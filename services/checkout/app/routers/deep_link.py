from __future__ import annotations

from fastapi import APIRouter, Depends

from services.checkout.app.models.checkout import DeepLinkRequest, DeepLinkResponse
from services.checkout.app.services.runtime import CheckoutRuntime, get_runtime

router = APIRouter()


@router.post("/v1/deep-links", response_model=DeepLinkResponse)
async def receive_deep_link(
    payload: DeepLinkRequest, runtime: CheckoutRuntime = Depends(get_runtime)
) -> DeepLinkResponse:
    # Sessions that do not own the order ignore the link, so fan out to everyone.
    delivered = runtime.hub.dispatch(payload.url.strip())
    return DeepLinkResponse(delivered_to=delivered)


@router.post("/v1/app/foreground", response_model=DeepLinkResponse)
async def app_foreground(runtime: CheckoutRuntime = Depends(get_runtime)) -> DeepLinkResponse:
    return DeepLinkResponse(delivered_to=runtime.hub.foreground())
