import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.v1.admin import router as admin_router
from app.api.v1.bookings import router as bookings_router
from app.core.config import settings
from app.wiring.dependencies import get_view_model, shutdown

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("booking_id", "status", "service", "request_no", "count", "reason", "error"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(_: FastAPI):
    # One admin view model per process, fed by the change feed until shutdown
    await get_view_model().start()
    try:
        yield
    finally:
        await shutdown()


app = FastAPI(title="Auto Service Booking", version="1.0.0", lifespan=lifespan)

app.include_router(bookings_router, prefix="/api/v1", tags=["bookings"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
