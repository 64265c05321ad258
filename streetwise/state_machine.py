"""
State Machines for the Streetwise map view

Provides predictable, debuggable state transitions for:
- Pin-drop workflow (single location or two-point road segment)
- Buddy chat panel

Pin workflow:
┌──────────────────────────────────────────────────────────────────┐
│  OFF ──enable(location)──→ ARMED_LOCATION ──click──→ OFF         │
│   │                                                              │
│   └──enable(road)──→ AWAITING_START ──click──→ AWAITING_END      │
│                                                  │               │
│                                     OFF ←──click─┘               │
│  any ARMED_* ──cancel──→ OFF                                     │
└──────────────────────────────────────────────────────────────────┘

All transitions are logged for debugging.
"""

from typing import Dict, Any, Optional, Callable, List, Set, Union
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
import threading
from collections import deque

from streetwise.exceptions import ValidationError
from streetwise.logging_config import logger
from streetwise.models import Coordinate, RoadSegment


class PinState(str, Enum):
    """Pin-drop workflow states"""
    OFF = "off"
    ARMED_LOCATION = "armed_location"
    ARMED_ROAD_AWAITING_START = "armed_road_awaiting_start"
    ARMED_ROAD_AWAITING_END = "armed_road_awaiting_end"


class PinType(str, Enum):
    """What a pin session produces"""
    LOCATION = "location"
    ROAD = "road"


class ChatState(str, Enum):
    """Buddy chat panel states"""
    CLOSED = "closed"
    OPEN = "open"


# Valid state transitions
PIN_TRANSITIONS: Dict[PinState, Set[PinState]] = {
    PinState.OFF: {PinState.ARMED_LOCATION, PinState.ARMED_ROAD_AWAITING_START},
    PinState.ARMED_LOCATION: {PinState.OFF},
    PinState.ARMED_ROAD_AWAITING_START: {PinState.ARMED_ROAD_AWAITING_END, PinState.OFF},
    PinState.ARMED_ROAD_AWAITING_END: {PinState.OFF},
}

CHAT_TRANSITIONS: Dict[ChatState, Set[ChatState]] = {
    ChatState.CLOSED: {ChatState.OPEN},
    ChatState.OPEN: {ChatState.CLOSED},
}

ARMED_STATES = {
    PinState.ARMED_LOCATION,
    PinState.ARMED_ROAD_AWAITING_START,
    PinState.ARMED_ROAD_AWAITING_END,
}


@dataclass
class StateTransition:
    """Record of a state transition"""
    from_state: str
    to_state: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_state,
            "to": self.to_state,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "metadata": self.metadata
        }


class StateMachine:
    """
    Generic state machine with validation and callbacks.

    Features:
    - Validates transitions against allowed transitions
    - Maintains transition history
    - Supports callbacks on state change
    - Serialises read-modify-write of the state behind a lock
    """

    def __init__(
        self,
        name: str,
        initial_state: Enum,
        transitions: Dict[Enum, Set[Enum]],
        max_history: int = 100
    ):
        self.name = name
        self._state = initial_state
        self._transitions = transitions
        self._lock = threading.RLock()
        self._history: deque = deque(maxlen=max_history)
        self._callbacks: List[Callable] = []

    @property
    def state(self) -> Enum:
        """Get current state"""
        with self._lock:
            return self._state

    def can_transition(self, to_state: Enum) -> bool:
        """Check if transition is valid"""
        with self._lock:
            allowed = self._transitions.get(self._state, set())
            return to_state in allowed

    def transition(
        self,
        to_state: Enum,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        force: bool = False
    ) -> bool:
        """
        Transition to new state.

        Args:
            to_state: Target state
            reason: Why the transition is happening
            metadata: Additional data about the transition
            force: Skip validation

        Returns:
            True if transition succeeded
        """
        with self._lock:
            if not force and not self.can_transition(to_state):
                allowed = self._transitions.get(self._state, set())
                logger.warning(
                    f"[{self.name}] Invalid transition: {self._state.value} → {to_state.value}. "
                    f"Allowed: {sorted(s.value for s in allowed)}"
                )
                return False

            transition = StateTransition(
                from_state=self._state.value,
                to_state=to_state.value,
                reason=reason,
                metadata=metadata or {}
            )
            self._history.append(transition)

            old_state = self._state
            self._state = to_state

            logger.log_transition(self.name, old_state.value, to_state.value, reason)

        # Call callbacks outside lock
        for callback in self._callbacks:
            try:
                callback(old_state, to_state, transition)
            except Exception as e:
                logger.error(f"[{self.name}] Callback error: {e}")

        return True

    def on_transition(self, callback: Callable):
        """Register callback for state transitions"""
        self._callbacks.append(callback)

    def get_history(self, limit: int = 10) -> List[StateTransition]:
        """Get recent transition history"""
        with self._lock:
            return list(self._history)[-limit:]


# ============================================
# Pin-drop workflow
# ============================================

PendingTarget = Union[Coordinate, RoadSegment]


@dataclass
class Marker:
    """Transient marker dropped during a pin session"""
    coordinate: Coordinate
    label: str  # "!" location, "S" road start, "E" road end


@dataclass
class PinSession:
    """Client-only state of the current pin workflow"""
    pin_type: PinType = PinType.LOCATION
    points: List[Coordinate] = field(default_factory=list)
    pending_target: Optional[PendingTarget] = None
    line: Optional[RoadSegment] = None
    form_visible: bool = False

    @property
    def markers(self) -> List[Marker]:
        if self.pin_type == PinType.ROAD:
            labels = ["S", "E"]
        else:
            labels = ["!"]
        return [Marker(point, labels[min(i, len(labels) - 1)]) for i, point in enumerate(self.points)]

    def reset(self) -> None:
        self.points = []
        self.pending_target = None
        self.line = None
        self.form_visible = False


@dataclass
class PinEvent:
    """Emitted to listeners after every change of the pin session"""
    kind: str
    state: PinState
    session: PinSession
    message: Optional[str] = None


class PinModeStateMachine(StateMachine):
    """Interprets map clicks according to the pin mode and pin type"""

    def __init__(self):
        super().__init__(
            name="PinMode",
            initial_state=PinState.OFF,
            transitions=PIN_TRANSITIONS
        )
        self.session = PinSession()
        self._listeners: List[Callable[[PinEvent], None]] = []

    @property
    def is_armed(self) -> bool:
        return self.state in ARMED_STATES

    @property
    def pin_type(self) -> PinType:
        return self.session.pin_type

    def on_event(self, callback: Callable[[PinEvent], None]) -> None:
        """Register listener (e.g. the map surface mirroring markers)"""
        self._listeners.append(callback)

    def _emit(self, kind: str, message: Optional[str] = None) -> PinEvent:
        event = PinEvent(kind=kind, state=self.state, session=self.session, message=message)
        for callback in self._listeners:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"[{self.name}] Listener error: {e}")
        return event

    def set_pin_type(self, pin_type: Union[PinType, str]) -> None:
        """Choose location or road; the selector is disabled while armed"""
        with self._lock:
            if self.is_armed:
                raise ValidationError("Cannot change pin type while pin mode is active", field="pin_type")
            self.session.pin_type = PinType(pin_type)

    def enable(self, pin_type: Optional[Union[PinType, str]] = None) -> PinEvent:
        """Arm pin mode, starting a fresh session"""
        with self._lock:
            if self.is_armed:
                raise ValidationError("Pin mode is already active", field="pin_type")
            if pin_type is not None:
                self.session.pin_type = PinType(pin_type)

            self.session.reset()
            target = (
                PinState.ARMED_LOCATION
                if self.session.pin_type == PinType.LOCATION
                else PinState.ARMED_ROAD_AWAITING_START
            )
            self.transition(target, reason=f"Pin mode enabled ({self.session.pin_type.value})")

        return self._emit("armed")

    def click(self, coordinate: Coordinate) -> Optional[PinEvent]:
        """
        Handle a map click.

        Returns:
            The resulting event, or None when pin mode is off (clicks are ignored)
        """
        with self._lock:
            state = self.state

            if state == PinState.ARMED_LOCATION:
                self.session.points = [coordinate]
                self.session.pending_target = coordinate
                self.session.form_visible = True
                self.transition(PinState.OFF, reason="Location pinned")
                kind, message = "target_ready", "Location pinned! Fill in the report details."

            elif state == PinState.ARMED_ROAD_AWAITING_START:
                self.session.points = [coordinate]
                self.transition(PinState.ARMED_ROAD_AWAITING_END, reason="Road start pinned")
                kind, message = "marker_placed", "Start point set. Click to set end point."

            elif state == PinState.ARMED_ROAD_AWAITING_END:
                start = self.session.points[0]
                segment = RoadSegment(start=start, end=coordinate)
                self.session.points = [start, coordinate]
                self.session.line = segment
                self.session.pending_target = segment
                self.session.form_visible = True
                self.transition(PinState.OFF, reason="Road segment pinned")
                kind, message = "target_ready", "Road segment pinned! Fill in the report details."

            else:
                return None

        return self._emit(kind, message)

    def cancel(self) -> Optional[PinEvent]:
        """Abort an armed session; markers and line are removed"""
        with self._lock:
            if not self.is_armed:
                return None
            self.session.reset()
            self.transition(PinState.OFF, reason="Cancelled by user")

        return self._emit("cleared")

    def clear(self) -> PinEvent:
        """Drop markers, line and pending target (after submission or form close)"""
        with self._lock:
            self.session.reset()
            if self.is_armed:
                self.transition(PinState.OFF, reason="Session cleared")

        return self._emit("cleared")


class ChatStateMachine(StateMachine):
    """CLOSED ↔ OPEN; sending and receiving never change the state"""

    def __init__(self):
        super().__init__(
            name="BuddyChat",
            initial_state=ChatState.CLOSED,
            transitions=CHAT_TRANSITIONS
        )

    @property
    def is_open(self) -> bool:
        return self.state == ChatState.OPEN

    def open(self, report_id: Any) -> bool:
        return self.transition(ChatState.OPEN, reason=f"Report {report_id} selected")

    def close(self) -> bool:
        return self.transition(ChatState.CLOSED, reason="Closed by user")
