"""Core data models used across policy, engine, controller, and CLI."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class OutletState(enum.Enum):
    ON = "on"
    OFF = "off"

    @classmethod
    def from_bool(cls, is_on: bool) -> OutletState:
        return cls.ON if is_on else cls.OFF

    @property
    def is_on(self) -> bool:
        return self is OutletState.ON


class Decision(enum.Enum):
    NO_ACTION = "no_action"
    ASSERT_ON = "assert_on"
    ASSERT_OFF = "assert_off"

    @property
    def target(self) -> OutletState | None:
        if self is Decision.ASSERT_ON:
            return OutletState.ON
        if self is Decision.ASSERT_OFF:
            return OutletState.OFF
        return None


class Phase(enum.Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    DISCOVERING_SERVICES = "discovering_services"
    WRITING = "writing"
    TEARDOWN = "teardown"
    RETRYING = "retrying"
    FAILED = "failed"


class EventKind(enum.Enum):
    PHASE = "phase"
    RETRY = "retry"
    SUCCESS = "success"
    FAILURE = "failure"
    ADAPTER_DISABLED = "adapter_disabled"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class Timings:
    scan_timeout_s: float = 15.0
    connect_timeout_s: float = 10.0
    discovery_timeout_s: float = 10.0
    write_timeout_s: float = 10.0
    retry_delay_s: float = 5.0
    max_retries: int = 3
    pair_grace_s: float = 2.0


@dataclass(frozen=True)
class AccessoryConfig:
    address: str
    low_threshold: int = 20
    high_threshold: int = 80
    timings: Timings = field(default_factory=Timings)
    pair: bool = True
    assume_paired: bool = False
    reassert_interval_s: float | None = None
    poll_interval_s: float = 60.0


@dataclass(frozen=True)
class ConfirmedState:
    is_on: bool
    confirmed_at_level: int | None = None

    @property
    def outlet(self) -> OutletState:
        return OutletState.from_bool(self.is_on)


@dataclass(frozen=True)
class EncodedCommand:
    service_uuid: str
    characteristic_uuid: str
    payload: bytes


@dataclass
class ConnectionAttempt:
    """Bookkeeping for the single command the engine is delivering."""

    id: str
    address: str
    target: OutletState
    phase: Phase = Phase.IDLE
    attempt_count: int = 0
    deadline: float | None = None


@dataclass(frozen=True)
class EngineEvent:
    kind: EventKind
    attempt_id: str
    address: str
    target: OutletState
    phase: Phase
    attempt_count: int
    max_retries: int
    error: str | None = None


@dataclass(frozen=True)
class CommandResult:
    address: str
    target: OutletState
    payload_hex: str
    attempts: int
