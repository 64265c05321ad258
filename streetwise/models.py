from enum import Enum
from typing import Optional, Union, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from streetwise.logging_config import logger


ResourceId = Union[int, str]


class ReportType(str, Enum):
    """Incident categories accepted by POST /api/security-reports"""
    THEFT = "theft"
    HARASSMENT = "harassment"
    LIGHTS = "lights"
    OTHER = "other"


class Coordinate(BaseModel):
    lat: float
    lng: float

    model_config = ConfigDict(frozen=True)

    def as_lng_lat(self) -> list:
        """GeoJSON order"""
        return [self.lng, self.lat]


class RoadSegment(BaseModel):
    start: Coordinate
    end: Coordinate

    model_config = ConfigDict(frozen=True)


# Server-owned entities. Mirrored verbatim: only ids are required and
# unknown fields are kept.

class ServerEntity(BaseModel):
    model_config = ConfigDict(extra="allow")


class SecurityReport(ServerEntity):
    id: ResourceId
    type: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    intensity: Optional[float] = None
    decay_weight: Optional[float] = None
    age_hours: Optional[float] = None
    created_at: Optional[str] = None
    is_active: Optional[bool] = None

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(lat=self.latitude, lng=self.longitude)


class EscortRequest(ServerEntity):
    id: ResourceId
    message: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[str] = None
    is_active: Optional[bool] = None
    status: Optional[str] = None

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(lat=self.latitude, lng=self.longitude)


class ChatMessage(ServerEntity):
    id: ResourceId
    report_id: Optional[ResourceId] = None
    user_id: Optional[ResourceId] = None
    message: Optional[str] = None
    created_at: Optional[str] = None


class UniversitySettings(ServerEntity):
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    zoom_level: Optional[float] = None


class CurrentUser(ServerEntity):
    id: Optional[ResourceId] = None
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None


# Request bodies

class SecurityReportCreate(BaseModel):
    type: ReportType
    description: str = Field(..., min_length=1)
    latitude: float
    longitude: float


class EscortRequestCreate(BaseModel):
    message: str = Field(..., min_length=1)
    latitude: float
    longitude: float


class ChatMessageCreate(BaseModel):
    message: str = Field(..., min_length=1)


def parse_list(model: type, payload: Any) -> list:
    """
    Parse a JSON array into models.

    A non-list payload yields an empty list. Items that are not objects or
    fail validation are skipped and logged; the rest of the list is kept.
    """
    if not isinstance(payload, list):
        return []

    items = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object {model.__name__} at index {index}")
            continue
        try:
            items.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(
                f"Skipping invalid {model.__name__} at index {index} "
                f"(id={item.get('id')}): {e.error_count()} error(s)"
            )
    return items
