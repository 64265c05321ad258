"""
Report Submission - turns a pinned location into a security report

Flow:
1. Validate type, description and the pinned target (no request on failure)
2. Re-check the session with /auth/current_user
3. POST /api/security-reports
4. Clear the pin session and refresh the security layer

Road segments are submitted with their start coordinate only; the end point
is used for the local line and is not part of the request body.
"""

from typing import Any, Awaitable, Callable, Optional, Union

from streetwise.api_client import StreetwiseAPIClient
from streetwise.exceptions import (
    AuthorizationError,
    SessionExpiredError,
    TransportError,
    ValidationError,
)
from streetwise.logging_config import logger
from streetwise.map_surface import MapSurface
from streetwise.models import (
    Coordinate,
    EscortRequestCreate,
    ReportType,
    RoadSegment,
    SecurityReportCreate,
)
from streetwise.session import SessionManager
from streetwise.state_machine import PinModeStateMachine


RefreshCallback = Callable[[], Awaitable[Any]]


def report_location(target: Union[Coordinate, RoadSegment]) -> Coordinate:
    """Coordinate sent to the backend for a pinned target"""
    if isinstance(target, RoadSegment):
        return target.start
    return target


class ReportSubmissionFlow:
    """Validates and submits the report form for the pending pin target"""

    def __init__(
        self,
        api: StreetwiseAPIClient,
        session: SessionManager,
        pins: PinModeStateMachine,
        on_submitted: Optional[RefreshCallback] = None,
    ):
        self.api = api
        self.session = session
        self.pins = pins
        self._on_submitted = on_submitted
        self.submitting = False

    def validate(self, report_type: Optional[str], description: Optional[str]) -> SecurityReportCreate:
        """Build the request body or raise ValidationError"""
        if not report_type or not description or not description.strip():
            raise ValidationError("Please fill in all fields")

        try:
            kind = ReportType(report_type)
        except ValueError:
            raise ValidationError(f"Unknown report type: {report_type}", field="type")

        target = self.pins.session.pending_target
        if target is None:
            raise ValidationError("Drop a pin on the map before submitting", field="location")

        location = report_location(target)
        return SecurityReportCreate(
            type=kind,
            description=description,
            latitude=location.lat,
            longitude=location.lng,
        )

    async def submit(self, report_type: Optional[str], description: Optional[str]) -> Any:
        """
        Submit the report for the current pin target.

        Raises:
            ValidationError: missing fields or no pinned target
            SessionExpiredError: the session re-check failed (nothing was sent)
            AuthorizationError: the user's role may not file reports
            TransportError: any other failure; the user may resubmit
        """
        body = self.validate(report_type, description)

        self.submitting = True
        try:
            await self.session.verify()

            try:
                created = await self.api.create_security_report(body)
            except AuthorizationError as e:
                raise AuthorizationError("Only students can submit security reports", path=e.details.get("path")) from e
            except SessionExpiredError:
                self.session.invalidate()
                raise
            except TransportError as e:
                if e.status_code is not None:
                    raise TransportError("Failed to submit report", status_code=e.status_code, path="/api/security-reports") from e
                raise
        finally:
            self.submitting = False

        logger.info(f"Security report submitted ({body.type.value}) at {body.latitude:.5f},{body.longitude:.5f}")
        self.pins.clear()

        if self._on_submitted is not None:
            await self._on_submitted()

        return created


class BuddyUpFlow:
    """Sends an escort request from the user's position"""

    def __init__(
        self,
        api: StreetwiseAPIClient,
        map_surface: MapSurface,
        on_sent: Optional[RefreshCallback] = None,
    ):
        self.api = api
        self.map = map_surface
        self._on_sent = on_sent

    async def request(self, message: Optional[str], location: Optional[Coordinate]) -> Any:
        """
        Raises:
            ValidationError: empty message or unknown position
            TransportError: the request failed
        """
        if not message or not message.strip():
            raise ValidationError("Please enter a message", field="message")
        if location is None:
            raise ValidationError("Unable to get your location", field="location")

        body = EscortRequestCreate(message=message, latitude=location.lat, longitude=location.lng)
        try:
            created = await self.api.create_escort_request(body)
        except TransportError as e:
            if e.status_code is not None:
                raise TransportError("Failed to send request", status_code=e.status_code, path="/api/escort-requests") from e
            raise

        self.map.add_pulse(location)
        logger.info(f"Buddy up request sent at {location.lat:.5f},{location.lng:.5f}")

        if self._on_sent is not None:
            await self._on_sent()

        return created
