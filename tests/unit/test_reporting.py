"""
Unit Tests for report submission and buddy-up requests
Tests for: validation before any request, session re-check, error mapping
"""
import json
from unittest.mock import AsyncMock

import pytest

from streetwise.exceptions import (
    AuthorizationError,
    SessionExpiredError,
    TransportError,
    ValidationError,
)
from streetwise.map_surface import MapSurface
from streetwise.models import Coordinate
from streetwise.reporting import BuddyUpFlow, ReportSubmissionFlow
from streetwise.state_machine import PinModeStateMachine, PinState, PinType

GATE = Coordinate(lat=-1.2921, lng=36.8219)
HOSTEL = Coordinate(lat=-1.2950, lng=36.8250)

REPORTS = "/api/security-reports"
CURRENT_USER = "/auth/current_user"


@pytest.fixture
def pins():
    return PinModeStateMachine()


@pytest.fixture
def on_submitted():
    return AsyncMock(return_value=True)


@pytest.fixture
def flow(api, session, pins, on_submitted):
    return ReportSubmissionFlow(api, session, pins, on_submitted=on_submitted)


def pin_location(pins, coordinate=GATE):
    pins.enable(PinType.LOCATION)
    pins.click(coordinate)


class TestValidation:
    """Nothing is sent when the form is incomplete"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("report_type,description", [
        ("theft", ""),
        ("theft", "   "),
        ("", "Phone snatched"),
        (None, None),
    ])
    async def test_missing_fields_make_no_request(self, flow, pins, backend, report_type, description):
        pin_location(pins)
        backend.requests.clear()

        with pytest.raises(ValidationError) as exc:
            await flow.submit(report_type, description)

        assert exc.value.message == "Please fill in all fields"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, flow, pins, backend):
        pin_location(pins)

        with pytest.raises(ValidationError):
            await flow.submit("vandalism", "Window broken")
        assert backend.calls("POST", REPORTS) == []

    @pytest.mark.asyncio
    async def test_no_pinned_target_rejected(self, flow, backend):
        with pytest.raises(ValidationError) as exc:
            await flow.submit("theft", "Phone snatched")

        assert exc.value.details == {"field": "location"}
        assert backend.calls("POST", REPORTS) == []


class TestSessionRecheck:

    @pytest.mark.asyncio
    async def test_current_user_checked_before_post(self, flow, pins, backend):
        backend.set("POST", REPORTS, status=201, json={"id": 10})
        pin_location(pins)
        backend.requests.clear()

        await flow.submit("theft", "Phone snatched")

        paths = [(r.method, r.url.path) for r in backend.requests]
        assert paths.index(("GET", CURRENT_USER)) < paths.index(("POST", REPORTS))

    @pytest.mark.asyncio
    async def test_expired_session_blocks_submission(self, flow, pins, session, backend, on_submitted):
        """Test that a 401 on the re-check clears the user and sends nothing"""
        backend.set("GET", CURRENT_USER, status=401, json={"error": "Unauthorized"})
        pin_location(pins)

        with pytest.raises(SessionExpiredError):
            await flow.submit("theft", "Phone snatched")

        assert session.is_authenticated is False
        assert backend.calls("POST", REPORTS) == []
        on_submitted.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_401_on_post_invalidates(self, flow, pins, session, backend):
        backend.set("POST", REPORTS, status=401, json={"error": "Unauthorized"})
        pin_location(pins)

        with pytest.raises(SessionExpiredError):
            await flow.submit("harassment", "Followed home")

        assert session.is_authenticated is False


class TestSubmission:

    @pytest.mark.asyncio
    async def test_success_clears_pins_and_refreshes(self, flow, pins, backend, on_submitted):
        backend.set("POST", REPORTS, status=201, json={"id": 10})
        pin_location(pins)

        created = await flow.submit("theft", "Phone snatched")

        assert created == {"id": 10}
        assert pins.state == PinState.OFF
        assert pins.session.pending_target is None
        assert pins.session.markers == []
        on_submitted.assert_awaited_once()
        assert flow.submitting is False

    @pytest.mark.asyncio
    async def test_road_segment_sends_start_point(self, flow, pins, backend):
        backend.set("POST", REPORTS, status=201, json={"id": 11})
        pins.enable(PinType.ROAD)
        pins.click(GATE)
        pins.click(HOSTEL)

        await flow.submit("lights", "Street lights out along the path")

        sent = json.loads(backend.calls("POST", REPORTS)[0].content)
        assert sent == {
            "type": "lights",
            "description": "Street lights out along the path",
            "latitude": GATE.lat,
            "longitude": GATE.lng,
        }

    @pytest.mark.asyncio
    async def test_forbidden_role(self, flow, pins, backend):
        backend.set("POST", REPORTS, status=403, json={"error": "Forbidden"})
        pin_location(pins)

        with pytest.raises(AuthorizationError) as exc:
            await flow.submit("theft", "Phone snatched")

        assert exc.value.message == "Only students can submit security reports"
        assert pins.session.pending_target == GATE

    @pytest.mark.asyncio
    async def test_server_error_keeps_target_for_retry(self, flow, pins, backend, on_submitted):
        backend.set("POST", REPORTS, status=500, json={"error": "boom"})
        pin_location(pins)

        with pytest.raises(TransportError) as exc:
            await flow.submit("theft", "Phone snatched")

        assert exc.value.message == "Failed to submit report"
        assert pins.session.pending_target == GATE
        on_submitted.assert_not_awaited()

        backend.set("POST", REPORTS, status=201, json={"id": 12})
        await flow.submit("theft", "Phone snatched")
        assert len(backend.calls("POST", REPORTS)) == 2

    @pytest.mark.asyncio
    async def test_network_error(self, flow, pins, backend):
        backend.fail("POST", REPORTS)
        pin_location(pins)

        with pytest.raises(TransportError) as exc:
            await flow.submit("theft", "Phone snatched")
        assert exc.value.message == "Network error"


class TestBuddyUp:

    @pytest.fixture
    def map_surface(self):
        return MapSurface("pk.test")

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, api, map_surface, backend):
        buddy = BuddyUpFlow(api, map_surface)

        with pytest.raises(ValidationError) as exc:
            await buddy.request("  ", GATE)
        assert exc.value.message == "Please enter a message"
        assert backend.calls("POST", "/api/escort-requests") == []

    @pytest.mark.asyncio
    async def test_unknown_location_rejected(self, api, map_surface):
        buddy = BuddyUpFlow(api, map_surface)

        with pytest.raises(ValidationError) as exc:
            await buddy.request("Walk with me", None)
        assert exc.value.message == "Unable to get your location"

    @pytest.mark.asyncio
    async def test_success_pulses_and_refreshes(self, api, map_surface, backend):
        backend.set("POST", "/api/escort-requests", status=201, json={"id": 3})
        on_sent = AsyncMock()
        buddy = BuddyUpFlow(api, map_surface, on_sent=on_sent)

        await buddy.request("Walk with me to the hostel", GATE)

        assert [p.coordinate for p in map_surface.pulses] == [GATE]
        on_sent.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_message(self, api, map_surface, backend):
        backend.set("POST", "/api/escort-requests", status=500, json={"error": "boom"})
        buddy = BuddyUpFlow(api, map_surface)

        with pytest.raises(TransportError) as exc:
            await buddy.request("Walk with me", GATE)
        assert exc.value.message == "Failed to send request"
        assert map_surface.pulses == []
