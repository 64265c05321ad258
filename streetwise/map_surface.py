"""
Map surface - the layer store a map renderer draws from

Holds one GeoJSON FeatureCollection per source (security pins, escort
requests, road segments), the transient pin markers and the camera. Every
update replaces a source wholesale, mirroring setData() on the map SDK.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from streetwise.exceptions import MapUnavailableError
from streetwise.logging_config import logger
from streetwise.models import (
    Coordinate,
    EscortRequest,
    RoadSegment,
    SecurityReport,
    UniversitySettings,
)
from streetwise.state_machine import Marker, PinEvent


SECURITY_PINS = "security-pins"
ESCORT_REQUESTS = "escort-requests"
ROAD_SEGMENTS = "road-segments"

SOURCES = (SECURITY_PINS, ESCORT_REQUESTS, ROAD_SEGMENTS)

# Point colours per report type on the security-points layer
REPORT_COLORS = {
    "theft": "#ff4444",
    "harassment": "#ffaa44",
    "lights": "#4444ff",
}
DEFAULT_REPORT_COLOR = "#666666"

FOCUS_ZOOM = 18
PULSE_TTL_SECONDS = 30.0
MIN_ZOOM = 10
MAX_ZOOM = 18


def empty_collection() -> Dict[str, Any]:
    return {"type": "FeatureCollection", "features": []}


def point_feature(longitude: float, latitude: float, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {
            "type": "Point",
            "coordinates": [longitude, latitude],
        },
    }


def report_color(report_type: Optional[str]) -> str:
    return REPORT_COLORS.get(report_type or "", DEFAULT_REPORT_COLOR)


@dataclass
class Pulse:
    """Temporary marker shown after a buddy-up request"""
    coordinate: Coordinate
    expires_at: float


class MapSurface:
    """In-memory model of the map: sources, markers and camera"""

    def __init__(self, access_token: Optional[str] = None, clock=time.monotonic):
        self.access_token = access_token
        self._clock = clock
        self.ready = False
        self.error: Optional[str] = None
        self.center = Coordinate(lat=-1.2921, lng=36.8219)
        self.zoom: float = 15
        self.title: str = "Campus University"
        self.sources: Dict[str, Dict[str, Any]] = {name: empty_collection() for name in SOURCES}
        self.markers: List[Marker] = []
        self._pulses: List[Pulse] = []

    def initialize(self, settings: Optional[UniversitySettings] = None) -> None:
        """
        Create the map at the university's configured center.

        Raises:
            MapUnavailableError: no SDK access token is configured
        """
        if settings is not None:
            self.apply_settings(settings)

        if not self.access_token:
            self.ready = False
            self.error = "Map access token is not configured"
            logger.error(f"Failed to initialize map: {self.error}")
            raise MapUnavailableError(self.error)

        self.sources = {name: empty_collection() for name in SOURCES}
        self.ready = True
        self.error = None
        logger.info(f"Map initialized at {self.center.lat:.4f},{self.center.lng:.4f} zoom {self.zoom}")

    def apply_settings(self, settings: UniversitySettings) -> None:
        """Missing fields keep the current defaults"""
        if settings.latitude is not None and settings.longitude is not None:
            self.center = Coordinate(lat=settings.latitude, lng=settings.longitude)
        if settings.zoom_level is not None:
            self.zoom = settings.zoom_level
        if settings.name:
            self.title = settings.name

    # ==================== Data layers ====================

    def set_security_reports(self, reports: List[SecurityReport]) -> None:
        features = [
            point_feature(
                report.longitude,
                report.latitude,
                {
                    "id": report.id,
                    "intensity": report.intensity,
                    "decay_weight": report.decay_weight,
                    "type": report.type,
                    "description": report.description,
                    "created_at": report.created_at,
                    "color": report_color(report.type),
                },
            )
            for report in reports
            if report.latitude is not None and report.longitude is not None
        ]
        self.sources[SECURITY_PINS] = {"type": "FeatureCollection", "features": features}

    def set_escort_requests(self, requests: List[EscortRequest]) -> None:
        features = [
            point_feature(
                request.longitude,
                request.latitude,
                {
                    "id": request.id,
                    "message": request.message,
                    "created_at": request.created_at,
                },
            )
            for request in requests
            if request.latitude is not None and request.longitude is not None
        ]
        self.sources[ESCORT_REQUESTS] = {"type": "FeatureCollection", "features": features}

    def set_road_segment(self, segment: Optional[RoadSegment]) -> None:
        if segment is None:
            self.sources[ROAD_SEGMENTS] = empty_collection()
            return

        line = {
            "type": "Feature",
            "properties": {},
            "geometry": {
                "type": "LineString",
                "coordinates": [segment.start.as_lng_lat(), segment.end.as_lng_lat()],
            },
        }
        self.sources[ROAD_SEGMENTS] = {"type": "FeatureCollection", "features": [line]}

    def feature_count(self, source: str) -> int:
        return len(self.sources.get(source, empty_collection())["features"])

    # ==================== Markers ====================

    def sync_pins(self, event: PinEvent) -> None:
        """Pin state machine listener: mirror markers and the road line"""
        self.clear_markers()
        for marker in event.session.markers:
            self.place_marker(marker.coordinate, marker.label)
        self.set_road_segment(event.session.line)

    def place_marker(self, coordinate: Coordinate, label: str) -> Marker:
        marker = Marker(coordinate, label)
        self.markers.append(marker)
        return marker

    def clear_markers(self) -> None:
        self.markers = []
        self.set_road_segment(None)

    def add_pulse(self, coordinate: Coordinate, ttl: float = PULSE_TTL_SECONDS) -> Pulse:
        pulse = Pulse(coordinate=coordinate, expires_at=self._clock() + ttl)
        self._pulses.append(pulse)
        return pulse

    @property
    def pulses(self) -> List[Pulse]:
        now = self._clock()
        self._pulses = [p for p in self._pulses if p.expires_at > now]
        return list(self._pulses)

    # ==================== Camera ====================

    def fly_to(self, coordinate: Coordinate, zoom: float = FOCUS_ZOOM) -> None:
        self.center = coordinate
        self.zoom = max(MIN_ZOOM, min(MAX_ZOOM, zoom))
