"""Sehaty checkout service entrypoint."""

from fastapi import FastAPI

from services.checkout.app.config import configure_logging
from services.checkout.app.db.init_db import init_db
from services.checkout.app.routers.audit import router as audit_router
from services.checkout.app.routers.checkout import router as checkout_router
from services.checkout.app.routers.deep_link import router as deep_link_router
from services.checkout.app.routers.orders import router as orders_router
from services.checkout.app.services.runtime import start_runtime, stop_runtime

app = FastAPI(title="Sehaty Checkout")

app.include_router(checkout_router)
app.include_router(deep_link_router)
app.include_router(orders_router)
app.include_router(audit_router)


@app.on_event("startup")
def _startup() -> None:
    configure_logging()
    init_db()
    start_runtime()


@app.on_event("shutdown")
async def _shutdown() -> None:
    await stop_runtime()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
