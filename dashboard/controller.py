"""Application state controller: owns dashboard state, drives fetches and the refresh timer."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from dashboard.app_types import AppState, AuthEvent, AuthSession, ForecastEntry, TemperatureUnit
from dashboard.auth import AuthClient, AuthError
from dashboard.data_sources.base import WeatherProvider
from dashboard.local_storage import LAST_CITY_KEY, JsonFileStorage
from dashboard.saved_cities.base import SavedCityStore
from dashboard.weather_service import MAX_FORECAST_DAYS, SAMPLES_PER_DAY, extract_daily_forecast
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="controller")

CURRENT_WEATHER_ERROR = "City not found or network error"
SIGN_UP_NOTICE = "Account created. Sign in to continue."

StateListener = Callable[[AppState], None]
StorageFactory = Callable[[str], JsonFileStorage]


class DashboardController:
    """
    Single owner of one browser's ``AppState``.

    Every mutation goes through this class and ends with a change notification
    to subscribed listeners. Blocking collaborator calls (HTTP, SQL, password
    hashing) run in worker threads so the event loop keeps serving requests.

    At most one refresh task exists at a time. It is cancelled before a
    replacement is scheduled, on sign-out and on ``close()``. Each fetch takes a
    sequence number and results of superseded fetches are dropped, so a slow
    search response never overwrites a newer refresh.
    """

    def __init__(
        self,
        auth: AuthClient,
        provider: WeatherProvider,
        saved_cities: SavedCityStore,
        *,
        storage_factory: Optional[StorageFactory] = None,
        refresh_interval: float = 30.0,
        forecast_stride: int = SAMPLES_PER_DAY,
        forecast_max_days: int = MAX_FORECAST_DAYS,
    ) -> None:
        self.auth = auth
        self.provider = provider
        self.saved_cities = saved_cities
        self.storage_factory = storage_factory
        self.refresh_interval = refresh_interval
        self.forecast_stride = forecast_stride
        self.forecast_max_days = forecast_max_days

        self.state = AppState()
        self._listeners: List[StateListener] = []
        self._storage: Optional[JsonFileStorage] = None
        self._request_seq = 0
        self._forecast_query: Optional[str] = None
        self._refresh_task: Optional[asyncio.Task] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._auth_events: Optional[asyncio.Queue] = None
        self._auth_pump: Optional[asyncio.Task] = None
        self._unsubscribe_auth: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a change listener; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception:
                logger.exception("State listener failed")

    @property
    def refresh_task(self) -> Optional[asyncio.Task]:
        return self._refresh_task

    @property
    def daily_forecast(self) -> List[ForecastEntry]:
        if self.state.forecast is None:
            return []
        return extract_daily_forecast(
            self.state.forecast.entries, stride=self.forecast_stride, max_days=self.forecast_max_days
        )

    # ------------------------------------------------------------------
    # lifecycle and auth
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Check for an existing session, then follow auth-state changes."""
        self._loop = asyncio.get_running_loop()
        self._auth_events = asyncio.Queue()
        session = await asyncio.to_thread(self.auth.get_session)
        self._unsubscribe_auth = self.auth.on_auth_state_change(self._enqueue_auth_event)
        self._auth_pump = asyncio.create_task(self._pump_auth_events(), name="auth-events")
        await self._apply_session(session)

    async def close(self) -> None:
        """Tear down the refresh timer and the auth subscription."""
        self._cancel_refresh()
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        if self._auth_pump is not None:
            self._auth_pump.cancel()
            await asyncio.gather(self._auth_pump, return_exceptions=True)
            self._auth_pump = None
        self._listeners.clear()
        logger.debug("Controller closed")

    def _enqueue_auth_event(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        # May be called from a worker thread (auth calls run via to_thread).
        if self._loop is None or self._auth_events is None:
            return
        self._loop.call_soon_threadsafe(self._auth_events.put_nowait, (event, session))

    async def _pump_auth_events(self) -> None:
        assert self._auth_events is not None
        while True:
            event, session = await self._auth_events.get()
            try:
                logger.debug("Auth event %s", event.value)
                await self._apply_session(session if event is AuthEvent.SIGNED_IN else None)
            except Exception:
                logger.exception("Failed to apply auth event %s", event.value)
            finally:
                self._auth_events.task_done()

    async def settle_auth_events(self) -> None:
        if self._auth_events is not None:
            await self._auth_events.join()

    async def _apply_session(self, session: Optional[AuthSession]) -> None:
        if session is None:
            if self.state.session is not None:
                logger.info("Signed out", extra={"user_id": self.state.session.user_id})
            self._reset_signed_out()
            return

        previous = self.state.session
        if previous is not None and previous.user_id != session.user_id:
            self._reset_signed_out()
        self.state.session = session
        self._storage = self.storage_factory(session.user_id) if self.storage_factory else None
        self._notify()
        await self.reload_saved_cities()

        if self.state.active_city is None and self._storage is not None:
            last_city = await asyncio.to_thread(self._storage.get_item, LAST_CITY_KEY)
            if last_city:
                logger.info("Restoring last active city %s", last_city)
                await self.set_active_city(last_city)

    def _reset_signed_out(self) -> None:
        self._cancel_refresh()
        self._request_seq += 1  # drop in-flight responses
        self._storage = None
        self._forecast_query = None
        self.state.session = None
        self.state.saved_cities = []
        self.state.active_city = None
        self.state.weather = None
        self.state.forecast = None
        self.state.loading = False
        self.state.error = None
        self._notify()

    async def sign_up(self, email: str, password: str) -> str:
        """Register an account; failures are raised and surfaced as an alert."""
        try:
            user_id = await asyncio.to_thread(self.auth.sign_up, email, password)
        except AuthError as exc:
            self._alert(str(exc))
            raise
        self._alert(SIGN_UP_NOTICE)
        return user_id

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in; the resulting SIGNED_IN notification is applied before returning."""
        try:
            session = await asyncio.to_thread(self.auth.sign_in_with_password, email, password)
        except AuthError as exc:
            self._alert(str(exc))
            raise
        self.state.alert = None
        await self.settle_auth_events()
        return session

    async def sign_out(self) -> None:
        """Sign out; clears saved cities and stops background refreshes."""
        await asyncio.to_thread(self.auth.sign_out)
        await self.settle_auth_events()

    def _alert(self, message: str) -> None:
        self.state.alert = message
        self._notify()

    # ------------------------------------------------------------------
    # weather
    # ------------------------------------------------------------------

    async def set_active_city(self, name: str) -> bool:
        """
        Search for ``name`` and, if the fetch succeeds, make it the city that drives fetching.

        Blank names are ignored. On success the name becomes the active city,
        is written to local storage and gets a fresh refresh timer. On failure
        the error is shown and the previous active city (if any) keeps being
        refreshed.
        """
        city = (name or "").strip()
        if not city:
            return False

        previous = self.state.active_city
        self._cancel_refresh()
        seq = self._request_seq + 1
        ok = await self.fetch_weather(city)
        if self._request_seq != seq:
            # a newer search or a sign-out took over and owns the timer
            return False

        if ok:
            self.state.active_city = city
            self._notify()
            await self._remember_city(city)
            if self._request_seq != seq:
                return ok
        target = self.state.active_city if ok else previous
        if target is not None and self.state.active_city == target:
            self._schedule_refresh(target)
        return ok

    async def _remember_city(self, city: str) -> None:
        if self._storage is None:
            return
        try:
            await asyncio.to_thread(self._storage.set_item, LAST_CITY_KEY, city)
        except OSError:
            logger.exception("Could not remember last city %s", city)

    async def fetch_weather(self, city: str) -> bool:
        """
        Fetch current conditions and forecast for ``city`` concurrently.

        Current-conditions failure surfaces ``CURRENT_WEATHER_ERROR`` and clears
        both snapshots. Forecast failure is only logged; a forecast fetched for
        a different city is dropped so it never sits next to the wrong city.
        Returns True when current conditions were applied.
        """
        self._request_seq += 1
        seq = self._request_seq
        self.state.loading = True
        self.state.error = None
        self._notify()

        current, forecast = await asyncio.gather(
            asyncio.to_thread(self.provider.fetch_current_weather, city),
            asyncio.to_thread(self.provider.fetch_forecast, city),
            return_exceptions=True,
        )

        if seq != self._request_seq:
            logger.debug("Discarding superseded response for %s (request %d < %d)", city, seq, self._request_seq)
            return False

        self.state.loading = False
        if isinstance(current, Exception):
            logger.warning("Current conditions fetch failed for %s: %s", city, current)
            self.state.error = CURRENT_WEATHER_ERROR
            self.state.weather = None
            self.state.forecast = None
            self._forecast_query = None
            self._notify()
            return False

        self.state.weather = current
        if isinstance(forecast, Exception):
            logger.warning("Forecast fetch failed for %s: %s", city, forecast)
            if self._forecast_query != city:
                self.state.forecast = None
                self._forecast_query = None
        else:
            self.state.forecast = forecast
            self._forecast_query = city
        self._notify()
        return True

    def toggle_unit(self) -> TemperatureUnit:
        """Flip the display unit. No request is made and snapshots are untouched."""
        self.state.unit = self.state.unit.toggled()
        self._notify()
        return self.state.unit

    def _schedule_refresh(self, city: str) -> None:
        self._cancel_refresh()
        self._refresh_task = asyncio.create_task(self._refresh_loop(city), name=f"refresh:{city}")
        logger.debug("Scheduled refresh for %s every %ss", city, self.refresh_interval)

    def _cancel_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Cancelled refresh task %s", task.get_name())

    async def _refresh_loop(self, city: str) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            # an expired token emits SIGNED_OUT, which resets state and drops this task
            if await asyncio.to_thread(self.auth.get_session, touch=False) is None:
                logger.info("Session no longer valid; stopping refresh for %s", city)
                return
            logger.debug("Refreshing weather for %s", city)
            await self.fetch_weather(city)

    # ------------------------------------------------------------------
    # saved cities
    # ------------------------------------------------------------------

    async def reload_saved_cities(self) -> None:
        """Rebuild the saved list from the store. Failures are logged only."""
        session = self.state.session
        if session is None:
            self.state.saved_cities = []
            self._notify()
            return
        try:
            cities = await asyncio.to_thread(self.saved_cities.list_cities, session.user_id)
        except SQLAlchemyError:
            logger.exception("Error fetching saved cities")
            return
        self.state.saved_cities = cities
        self._notify()

    async def save_city(self, name: str) -> bool:
        """Save ``name`` with the current snapshot; no-op before the first successful fetch."""
        weather = self.state.weather
        session = self.state.session
        if weather is None or session is None:
            logger.debug("Nothing to save for %s (weather=%s, session=%s)", name, weather is not None, session is not None)
            return False
        try:
            await asyncio.to_thread(
                self.saved_cities.insert_city,
                session.user_id,
                name,
                weather.country,
                weather.document,
                datetime.now(timezone.utc),
            )
        except SQLAlchemyError:
            logger.exception("Error saving city %s", name)
            return False
        await self.reload_saved_cities()
        return True

    async def remove_city(self, name: str) -> bool:
        """Delete the user's saved entries for ``name`` and reload the list."""
        session = self.state.session
        if session is None:
            return False
        try:
            await asyncio.to_thread(self.saved_cities.delete_city, session.user_id, name)
        except SQLAlchemyError:
            logger.exception("Error removing city %s", name)
            return False
        await self.reload_saved_cities()
        return True
