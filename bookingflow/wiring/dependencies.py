from functools import lru_cache
import logging
from zoneinfo import ZoneInfo

from bookingflow.core.config import settings
from bookingflow.application.ports.booking_backend import BookingBackendPort
from bookingflow.application.ports.draft_store import DraftStorePort
from bookingflow.application.use_cases.booking_wizard import BookingWizard
from bookingflow.infrastructure.backend.http_backend import HttpBookingBackend
from bookingflow.infrastructure.backend.mock_backend import MockBookingBackend
from bookingflow.infrastructure.store.json_store import JsonDraftStore
from bookingflow.infrastructure.store.memory_store import MemoryDraftStore


@lru_cache
def get_draft_store() -> DraftStorePort:
    if settings.DRAFT_STORE_PROVIDER.lower() == "memory":
        return MemoryDraftStore(key=settings.DRAFT_STORAGE_KEY)
    return JsonDraftStore(data_dir=settings.DRAFT_DATA_DIR, key=settings.DRAFT_STORAGE_KEY)


@lru_cache
def get_booking_backend() -> BookingBackendPort:
    logger = logging.getLogger(__name__)
    if not settings.BACKEND_BASE_URL:
        if settings.ENV.lower() in {"dev", "local", "test"}:
            logger.info("Using MockBookingBackend (BACKEND_BASE_URL missing, ENV=%s)", settings.ENV)
            return MockBookingBackend()
        raise ValueError("BACKEND_BASE_URL is required outside dev/local.")

    logger.info("Using HttpBookingBackend", extra={"base_url": settings.BACKEND_BASE_URL})
    return HttpBookingBackend(
        base_url=settings.BACKEND_BASE_URL,
        user_id=settings.BACKEND_USER_ID,
        timeout=settings.BACKEND_TIMEOUT_SECONDS,
    )


def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.BOOKING_TIMEZONE)


def build_booking_wizard(
    store: DraftStorePort | None = None,
    backend: BookingBackendPort | None = None,
) -> BookingWizard:
    return BookingWizard(
        store=store or get_draft_store(),
        backend=backend or get_booking_backend(),
        timezone=get_timezone(),
        timeout_seconds=settings.BACKEND_TIMEOUT_SECONDS,
    )


@lru_cache
def get_booking_wizard() -> BookingWizard:
    """Process-wide wizard behind the HTTP API (one client per process)."""
    return build_booking_wizard()


async def shutdown_dependencies() -> None:
    """Drain the process-wide wizard's detached tasks and close the backend, if they were built."""
    if get_booking_wizard.cache_info().currsize:
        await get_booking_wizard().drain_background_tasks()
        get_booking_wizard.cache_clear()
    if get_booking_backend.cache_info().currsize:
        await get_booking_backend().aclose()
        get_booking_backend.cache_clear()
