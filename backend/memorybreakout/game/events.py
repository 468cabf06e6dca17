"""Inbound events handled by the room state machine and the effects it emits.

Every inbound client message, transport notification and timer firing is
turned into one of the event types below and fed to
``RoomStateMachine.handle``. The machine answers with an ``Outcome``: an
ordered list of ``Effect`` objects (messages and channel subscription
changes) plus the reply for the originating connection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Union

if TYPE_CHECKING:
    from .timers import TimerHandle


@dataclass(frozen=True)
class JoinRequested:
    connection_id: str
    name: str = ""
    persistent_id: str | None = None


@dataclass(frozen=True)
class ReadyChanged:
    connection_id: str
    ready: bool


@dataclass(frozen=True)
class AssetsLoaded:
    connection_id: str


@dataclass(frozen=True)
class SelectionMade:
    connection_id: str
    symbol: str


@dataclass(frozen=True)
class LeaveRequested:
    connection_id: str


@dataclass(frozen=True)
class Disconnected:
    connection_id: str


@dataclass(frozen=True)
class HostAttached:
    connection_id: str


@dataclass(frozen=True)
class HostStartRequested:
    connection_id: str


@dataclass(frozen=True)
class HostCancelRequested:
    connection_id: str


@dataclass(frozen=True)
class ForceActivate:
    pass


@dataclass(frozen=True)
class ForceReset:
    pass


@dataclass(frozen=True, eq=False)
class CountdownExpired:
    timer: TimerHandle


@dataclass(frozen=True, eq=False)
class RemovalExpired:
    persistent_id: str
    timer: TimerHandle


@dataclass(frozen=True, eq=False)
class PauseElapsed:
    round_number: int
    timer: TimerHandle


Event = Union[
    JoinRequested,
    ReadyChanged,
    AssetsLoaded,
    SelectionMade,
    LeaveRequested,
    Disconnected,
    HostAttached,
    HostStartRequested,
    HostCancelRequested,
    ForceActivate,
    ForceReset,
    CountdownExpired,
    RemovalExpired,
    PauseElapsed,
]

EffectKind = Literal["connection", "room", "subscribe", "unsubscribe"]


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    target: str
    event: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class Outcome:
    effects: list[Effect] = field(default_factory=list)
    reply: dict[str, Any] = field(default_factory=lambda: {"ok": True})
    room_deleted: bool = False

    def to_connection(self, connection_id: str, event: str, payload: dict[str, Any]) -> None:
        self.effects.append(Effect("connection", connection_id, event, payload))

    def to_room(self, room_id: str, event: str, payload: dict[str, Any]) -> None:
        self.effects.append(Effect("room", room_id, event, payload))

    def subscribe(self, connection_id: str, room_id: str) -> None:
        self.effects.append(Effect("subscribe", connection_id, payload={"roomId": room_id}))

    def unsubscribe(self, connection_id: str, room_id: str) -> None:
        self.effects.append(Effect("unsubscribe", connection_id, payload={"roomId": room_id}))

    def events_for(self, target: str) -> list[str]:
        return [e.event for e in self.effects if e.target == target and e.event]
