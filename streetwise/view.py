"""
Streetwise View - the safety map screen

Wires the pin workflow, report submission, live refreshers and buddy chat
to one API client and one session. Handlers here are where user actions
enter; every client error is caught here and shown as a notification.

Usage:
    async with StreetwiseAPIClient(config) as api:
        session = SessionManager(api)
        await session.hydrate()
        async with StreetwiseView(config, api, session) as view:
            view.enable_pin_mode("location")
            view.map_click(-1.29, 36.82)
            await view.submit_report("theft", "Phone snatched near the gate")
"""

from typing import Optional, Union

from rich.console import Console

from streetwise.api_client import StreetwiseAPIClient
from streetwise.chat import BuddyChatSession
from streetwise.config import StreetwiseConfig
from streetwise.exceptions import (
    AuthorizationError,
    MapUnavailableError,
    SessionExpiredError,
    StreetwiseError,
    TransportError,
    ValidationError,
)
from streetwise.logging_config import generate_view_id, logger, set_view_id
from streetwise.map_surface import MapSurface
from streetwise.models import Coordinate, CurrentUser, ResourceId, SecurityReport, UniversitySettings
from streetwise.notifications import Notifier
from streetwise.pollers import LiveFeedRefresher, ViewScope
from streetwise.renderer import StreetwiseRenderer
from streetwise.reporting import BuddyUpFlow, ReportSubmissionFlow
from streetwise.session import SessionManager
from streetwise.state_machine import PinEvent, PinModeStateMachine, PinType


class StreetwiseView:
    """One mounted instance of the safety map"""

    def __init__(
        self,
        config: StreetwiseConfig,
        api: StreetwiseAPIClient,
        session: SessionManager,
        console: Optional[Console] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.config = config
        self.api = api
        self.session = session
        self.console = console or Console()
        self.notifier = notifier or Notifier(self.console)
        self.renderer = StreetwiseRenderer(self.console)

        self.view_id = generate_view_id()
        self.scope = ViewScope(f"streetwise:{self.view_id}")
        self.map = MapSurface(config.map_access_token)
        self.map.title = config.university_name
        self.map.center = Coordinate(lat=config.default_latitude, lng=config.default_longitude)
        self.map.zoom = config.default_zoom

        self.pins = PinModeStateMachine()
        self.pins.on_event(self._on_pin_event)
        self.session.on_change(self._on_session_change)

        self.refresher = LiveFeedRefresher(api, self.map, self.scope, config, on_error=self._on_poll_error)
        self.chat = BuddyChatSession(api, self.map, self.scope, config)
        self.reports = ReportSubmissionFlow(
            api, session, self.pins, on_submitted=self.refresher.refresh_security_layer
        )
        self.buddy_up = BuddyUpFlow(api, self.map, on_sent=self.refresher.refresh_escort_layer)

        self.map_error = False
        self.mounted = False

    async def __aenter__(self) -> "StreetwiseView":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.unmount()

    # ==================== Lifecycle ====================

    async def mount(self) -> None:
        """Load map defaults, initialise the map and start polling"""
        set_view_id(self.view_id)

        settings: Optional[UniversitySettings] = None
        try:
            settings = await self.api.get_university_settings()
        except StreetwiseError as e:
            logger.warning(f"Failed to fetch university settings, keeping defaults: {e}")

        try:
            self.map.initialize(settings)
            self.map_error = False
        except MapUnavailableError as e:
            self.map_error = True
            logger.log_error_with_context(e, "map initialisation")

        self.refresher.start(map_layers=not self.map_error)
        self.mounted = True

    async def unmount(self) -> None:
        """Stop every timer and request started by this view"""
        if not self.mounted:
            return
        await self.chat.close()
        self.refresher.stop()
        await self.scope.close()
        self.mounted = False

        history = self.pins.get_history()
        if history:
            logger.debug(f"Pin transitions this view: {[t.to_dict() for t in history]}")

    def _on_poll_error(self, error: Exception) -> None:
        if isinstance(error, SessionExpiredError):
            self.session.invalidate()

    def _on_session_change(self, user: Optional[CurrentUser]) -> None:
        # Signed out mid-workflow: drop the pin session
        if user is None and self.pins.is_armed:
            self.pins.cancel()

    def _on_pin_event(self, event: PinEvent) -> None:
        self.map.sync_pins(event)
        if event.message:
            self.notifier.success(event.message)

    # ==================== Pin workflow ====================

    def set_pin_type(self, pin_type: Union[PinType, str]) -> bool:
        try:
            self.pins.set_pin_type(pin_type)
        except (ValidationError, ValueError) as e:
            self.notifier.error(getattr(e, "message", str(e)))
            return False
        return True

    def enable_pin_mode(self, pin_type: Optional[Union[PinType, str]] = None) -> bool:
        if not self.session.is_authenticated:
            self.notifier.error("Please login to report incidents")
            return False
        if not self.session.can_report:
            self.notifier.error("Only students can submit security reports")
            return False
        if self.map_error:
            self.notifier.error("Map unavailable")
            return False

        try:
            self.pins.enable(pin_type)
        except (ValidationError, ValueError) as e:
            self.notifier.error(getattr(e, "message", str(e)))
            return False

        if self.pins.pin_type == PinType.ROAD:
            self.notifier.info("Click the start of the road segment")
        else:
            self.notifier.info("Click on the map to pin the incident")
        return True

    def map_click(self, lat: float, lng: float) -> Optional[PinEvent]:
        """Map click; ignored unless pin mode is armed"""
        return self.pins.click(Coordinate(lat=lat, lng=lng))

    def drop_pin_at_center(self) -> Optional[PinEvent]:
        """Drop the next pin at the map center"""
        if not self.pins.is_armed:
            self.notifier.error("Please enable pin mode first")
            return None
        return self.pins.click(self.map.center)

    def cancel_pin(self) -> None:
        self.pins.cancel()

    def close_report_form(self) -> None:
        self.pins.clear()

    async def submit_report(self, report_type: Optional[str], description: Optional[str]) -> bool:
        try:
            await self.reports.submit(report_type, description)
        except SessionExpiredError:
            self.notifier.error("Please login again")
            return False
        except (ValidationError, AuthorizationError, TransportError) as e:
            self.notifier.error(e.message)
            return False
        except StreetwiseError as e:
            logger.log_error_with_context(e, "report submission")
            self.notifier.error("Failed to submit report")
            return False

        self.notifier.success("Security report submitted!")
        return True

    # ==================== Buddy up ====================

    async def request_buddy_up(
        self,
        message: Optional[str],
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> bool:
        location = Coordinate(lat=lat, lng=lng) if lat is not None and lng is not None else None
        try:
            await self.buddy_up.request(message, location)
        except SessionExpiredError:
            self.session.invalidate()
            self.notifier.error("Please login again")
            return False
        except AuthorizationError:
            self.notifier.error("Failed to send request")
            return False
        except StreetwiseError as e:
            self.notifier.error(e.message)
            return False

        self.notifier.success("Buddy up request sent!")
        return True

    # ==================== Buddy chat ====================

    def find_report(self, report_id: ResourceId) -> Optional[SecurityReport]:
        for report in self.refresher.active_reports:
            if str(report.id) == str(report_id):
                return report
        return None

    async def select_report(self, report: Union[SecurityReport, ResourceId]) -> bool:
        if not isinstance(report, SecurityReport):
            found = self.find_report(report)
            if found is None:
                self.notifier.error(f"Report {report} is not in the active feed")
                return False
            report = found

        await self.chat.open(report)
        return True

    async def send_chat(self, text: Optional[str] = None) -> bool:
        try:
            return await self.chat.send(text)
        except SessionExpiredError:
            self.session.invalidate()
            self.notifier.error("Please login again")
        except TransportError as e:
            self.notifier.error("Failed to send message" if e.status_code is not None else e.message)
        except StreetwiseError as e:
            self.notifier.error(e.message if isinstance(e, ValidationError) else "Failed to send message")
        return False

    async def close_chat(self) -> None:
        await self.chat.close()

    # ==================== Rendering ====================

    def render(self) -> None:
        self.renderer.print_map(self.map)
        self.renderer.print_feed(
            self.refresher.active_reports,
            self.refresher.last_updated,
            self.refresher.is_refreshing,
        )
        if self.chat.is_open and self.chat.report is not None:
            self.renderer.print_chat(self.chat.report, self.chat.messages, self.chat.draft)
