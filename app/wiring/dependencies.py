from datetime import date, datetime
import logging
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.application.ports.auth import AuthPort
from app.application.ports.booking_repository import BookingRepositoryPort
from app.application.use_cases.catalog_cache import CatalogCache
from app.application.use_cases.submit_booking import SubmitBookingUseCase
from app.application.view_models.booking_view_model import BookingViewModel
from app.infrastructure.auth.static_auth import StaticAdminAuth
from app.infrastructure.store.demo_catalog import DEMO_SERVICES, DEMO_TIME_SLOTS
from app.infrastructure.store.memory_store import MemoryBookingRepository
from app.infrastructure.supabase.admin_auth import SupabaseAdminAuth
from app.infrastructure.supabase.client import SupabaseClientProvider
from app.infrastructure.supabase.postgrest_repository import PostgrestBookingRepository
from app.infrastructure.supabase.realtime_feed import RealtimeChangeFeed


logger = logging.getLogger(__name__)

# Public submissions and catalog reads use the anon key. Admin reads and
# writes go through a separate repository that carries the admin's token.
_repository: BookingRepositoryPort | None = None
_admin_repository: BookingRepositoryPort | None = None
_change_feed: RealtimeChangeFeed | None = None
_catalog: CatalogCache | None = None
_auth: AuthPort | None = None
_view_model: BookingViewModel | None = None


def _use_supabase() -> bool:
    return settings.STORE_PROVIDER.lower() == "supabase"


def _supabase_provider() -> SupabaseClientProvider:
    if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required when STORE_PROVIDER=supabase")
    return SupabaseClientProvider(
        url=settings.SUPABASE_URL,
        api_key=settings.SUPABASE_ANON_KEY,
        schema=settings.SUPABASE_SCHEMA,
        timeout=settings.SUPABASE_TIMEOUT_SECONDS,
    )


def get_change_feed() -> RealtimeChangeFeed | None:
    global _change_feed
    if _change_feed is None and _use_supabase():
        _change_feed = RealtimeChangeFeed(provider=_supabase_provider(), schema=settings.SUPABASE_SCHEMA)
    return _change_feed


def get_booking_repository() -> BookingRepositoryPort:
    global _repository
    if _repository is None:
        if _use_supabase():
            logger.info("Using PostgrestBookingRepository", extra={"reason": settings.SUPABASE_URL})
            _repository = PostgrestBookingRepository(provider=_supabase_provider())
        else:
            logger.info("Using MemoryBookingRepository (STORE_PROVIDER=%s)", settings.STORE_PROVIDER)
            seed = settings.SEED_DEMO_CATALOG
            _repository = MemoryBookingRepository(
                services=DEMO_SERVICES if seed else None,
                time_slots=DEMO_TIME_SLOTS if seed else None,
            )
    return _repository


def get_admin_repository() -> BookingRepositoryPort:
    global _admin_repository
    if _admin_repository is None:
        if _use_supabase():
            _admin_repository = PostgrestBookingRepository(
                provider=_supabase_provider(),
                change_feed=get_change_feed(),
            )
        else:
            _admin_repository = get_booking_repository()
    return _admin_repository


def get_catalog_cache() -> CatalogCache:
    global _catalog
    if _catalog is None:
        _catalog = CatalogCache(get_booking_repository())
    return _catalog


def get_auth() -> AuthPort:
    global _auth
    if _auth is None:
        if _use_supabase():
            _auth = SupabaseAdminAuth(provider=_supabase_provider())
        else:
            if settings.ENV.lower() not in {"dev", "local", "test"}:
                raise ValueError("Static admin auth is only allowed with ENV=dev/local/test")
            _auth = StaticAdminAuth(email=settings.ADMIN_EMAIL, password=settings.ADMIN_PASSWORD)
    return _auth


def get_view_model() -> BookingViewModel:
    global _view_model
    if _view_model is None:
        _view_model = BookingViewModel(get_admin_repository())
    return _view_model


def get_submit_booking_use_case() -> SubmitBookingUseCase:
    return SubmitBookingUseCase(repository=get_booking_repository(), catalog=get_catalog_cache())


async def act_as_admin(access_token: str) -> None:
    """Send later admin store calls with this session's token; reload if the token changed."""
    repository = get_admin_repository()
    if repository.access_token == access_token:
        return
    repository.use_access_token(access_token)
    logger.info("Admin store session switched")
    await get_view_model().reconcile()


def release_admin(access_token: str) -> None:
    repository = get_admin_repository()
    if repository.access_token == access_token:
        repository.use_access_token(None)


def business_today() -> date:
    try:
        tz = ZoneInfo(settings.BUSINESS_TIMEZONE)
    except Exception:
        tz = ZoneInfo("UTC")
    return datetime.now(tz).date()


def configure(
    repository: BookingRepositoryPort | None = None,
    auth: AuthPort | None = None,
) -> None:
    """Swap collaborators before startup. Drops every cached instance."""
    global _repository, _admin_repository, _change_feed, _catalog, _auth, _view_model
    _repository = repository
    _admin_repository = repository
    _auth = auth
    _change_feed = None
    _catalog = None
    _view_model = None


async def shutdown() -> None:
    global _repository, _admin_repository, _catalog, _auth, _view_model, _change_feed
    if _view_model is not None:
        await _view_model.close()
    if _change_feed is not None:
        await _change_feed.close()
    if _repository is not None:
        await _repository.aclose()
    if _admin_repository is not None and _admin_repository is not _repository:
        await _admin_repository.aclose()
    if _auth is not None:
        await _auth.aclose()
    if isinstance(_repository, PostgrestBookingRepository):
        _repository = None
        _admin_repository = None
        _catalog = None
    _auth = None
    _view_model = None
    _change_feed = None
