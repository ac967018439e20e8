"""Session wiring: token store selection and the registry of per-browser controllers."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Optional, Set

import redis
from redis.exceptions import RedisError

from dashboard import config
from dashboard.app_types import AppState
from dashboard.auth import AccountStore, AuthClient
from dashboard.controller import DashboardController
from dashboard.data_sources import WeatherProvider, build_weather_provider
from dashboard.database import create_db_engine, init_schema
from dashboard.local_storage import JsonFileStorage
from dashboard.saved_cities import SavedCityStore, SqlSavedCityStore
from dashboard.session_store import InMemorySessionStore, RedisSessionStore, SessionStore
from utils.logging_utils import get_tagged_logger, mask_db_url

logger = get_tagged_logger(__name__, tag="session_manager")


def init_session_store(settings: config.Settings | None = None) -> SessionStore:
    """Initialize the backing token store based on configuration."""
    settings = settings or config.settings
    if settings.session_redis_url:
        try:
            client = redis.Redis.from_url(settings.session_redis_url)
            client.ping()
            logger.info("Using RedisSessionStore", extra={"redis_url": mask_db_url(settings.session_redis_url)})
            return RedisSessionStore(client, ttl_seconds=settings.session_ttl_seconds)
        except RedisError as exc:
            logger.warning("Falling back to InMemorySessionStore (Redis unavailable)", extra={"error": str(exc)})
    return InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)


class DashboardSessions:
    """
    Owns one ``DashboardController`` per signed-in browser, keyed by access token.

    Controllers are created on sign-in (or lazily when a still-valid token is
    presented after a restart) and closed on sign-out, expiry and shutdown, so
    no refresh timer outlives its session.
    """

    def __init__(
        self,
        accounts: AccountStore,
        sessions: SessionStore,
        provider: WeatherProvider,
        saved_cities: SavedCityStore,
        *,
        settings: config.Settings | None = None,
    ) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self.provider = provider
        self.saved_cities = saved_cities
        self.settings = settings or config.settings
        self._controllers: Dict[str, DashboardController] = {}
        self._closing: Set[asyncio.Task] = set()
        self._sweeper: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    def _storage_for(self, user_id: str) -> JsonFileStorage:
        return JsonFileStorage(Path(self.settings.storage_dir) / f"{user_id}.json")

    def _track(self, access_token: str, controller: DashboardController) -> None:
        """Register ``controller`` and evict it as soon as it reports signed out."""
        self._controllers[access_token] = controller

        def on_change(state: AppState) -> None:
            if state.session is not None or self._controllers.get(access_token) is not controller:
                return
            del self._controllers[access_token]
            logger.info("Evicting signed-out dashboard")
            task = asyncio.get_running_loop().create_task(controller.close())
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

        controller.subscribe(on_change)

    def _new_controller(self, access_token: Optional[str] = None) -> DashboardController:
        client = AuthClient(self.accounts, self.sessions, access_token=access_token)
        return DashboardController(
            client,
            self.provider,
            self.saved_cities,
            storage_factory=self._storage_for,
            refresh_interval=self.settings.refresh_interval_seconds,
            forecast_stride=self.settings.forecast_stride,
            forecast_max_days=self.settings.forecast_max_days,
        )

    async def sign_up(self, email: str, password: str) -> str:
        """Register an account through a short-lived, signed-out controller."""
        controller = self._new_controller()
        await controller.start()
        try:
            return await controller.sign_up(email, password)
        finally:
            await controller.close()

    async def sign_in(self, email: str, password: str) -> DashboardController:
        """Sign in and register the controller under its new token."""
        controller = self._new_controller()
        await controller.start()
        try:
            session = await controller.sign_in(email, password)
        except Exception:
            await controller.close()
            raise
        async with self._lock:
            self._track(session.access_token, controller)
        return controller

    async def get(self, access_token: str) -> Optional[DashboardController]:
        """Return the controller for a valid token, or None (expired tokens are dropped)."""
        async with self._lock:
            controller = self._controllers.get(access_token)
            if controller is None:
                controller = self._new_controller(access_token)
                await controller.start()
                if controller.state.session is None:
                    await controller.close()
                    return None
                logger.info("Restored controller for existing session", extra={"user_id": controller.state.session.user_id})
                self._track(access_token, controller)
                return controller

        if await asyncio.to_thread(controller.auth.get_session) is None:
            await controller.settle_auth_events()
            await self.discard(access_token)
            return None
        return controller

    async def sign_out(self, access_token: str) -> None:
        async with self._lock:
            controller = self._controllers.pop(access_token, None)
        if controller is None:
            await asyncio.to_thread(self.sessions.delete_session, access_token)
            return
        try:
            await controller.sign_out()
        finally:
            await controller.close()

    async def discard(self, access_token: str) -> None:
        async with self._lock:
            controller = self._controllers.pop(access_token, None)
        if controller is not None:
            await controller.close()

    async def sweep_expired(self) -> int:
        """
        Drop controllers whose token expired without another request arriving.

        The check does not extend the token, so an abandoned browser is evicted
        once its TTL runs out. Returns how many controllers were evicted.
        """
        async with self._lock:
            tracked = list(self._controllers.items())
        evicted = 0
        for access_token, controller in tracked:
            if await asyncio.to_thread(controller.auth.get_session, touch=False) is not None:
                continue
            await controller.settle_auth_events()
            await self.discard(access_token)
            evicted += 1
        if evicted:
            logger.info("Swept %d expired dashboard sessions", evicted)
        return evicted

    def start_sweeper(self, interval: float) -> None:
        """Run ``sweep_expired`` every ``interval`` seconds until ``close_all``."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(interval), name="session-sweeper")

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_expired()
            except Exception:
                logger.exception("Session sweep failed")

    async def close_all(self) -> None:
        """Stop the sweeper and close every controller (app shutdown)."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None
        async with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
        for controller in controllers:
            await controller.close()
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        logger.info("Closed %d dashboard controllers", len(controllers))

    @property
    def active_count(self) -> int:
        return len(self._controllers)


def build_dashboard_sessions(settings: config.Settings | None = None) -> DashboardSessions:
    """Wire stores, provider and token backend from configuration."""
    settings = settings or config.settings
    engine = create_db_engine(settings.database_url)
    init_schema(engine)
    return DashboardSessions(
        AccountStore(engine, min_password_length=settings.min_password_length),
        init_session_store(settings),
        build_weather_provider(settings),
        SqlSavedCityStore(engine),
        settings=settings,
    )
