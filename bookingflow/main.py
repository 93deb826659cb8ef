from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from bookingflow.api.v1.booking import router as booking_router
from bookingflow.core.config import settings
from bookingflow.wiring.dependencies import shutdown_dependencies


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in (
            "step",
            "resumed",
            "fields",
            "service_id",
            "booking_id",
            "promo_code",
            "promotion_id",
            "base_url",
            "path",
            "status",
            "error",
        ):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logging.getLogger(__name__).info("Shutting down booking service")
    await shutdown_dependencies()


app = FastAPI(title="Booking Checkout", version="1.0.0", lifespan=lifespan)

app.include_router(booking_router, prefix="/api/v1/booking", tags=["booking"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
