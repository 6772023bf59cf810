"""IBC channel and connection records as reported by chain query commands."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

STATE_OPEN = "STATE_OPEN"


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


@dataclass
class Counterparty:
    """The other end of a channel."""

    port_id: str = ""
    channel_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Counterparty:
        data = _mapping(data)
        return cls(port_id=_str(data, "port_id"), channel_id=_str(data, "channel_id"))


@dataclass
class Channel:
    """One IBC channel."""

    state: str = ""
    ordering: str = ""
    counterparty: Counterparty = field(default_factory=Counterparty)
    connection_hops: list[str] = field(default_factory=list)
    version: str = ""
    port_id: str = ""
    channel_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Channel:
        data = _mapping(data)
        return cls(
            state=_str(data, "state"),
            ordering=_str(data, "ordering"),
            counterparty=Counterparty.from_dict(data.get("counterparty")),
            connection_hops=[str(hop) for hop in data.get("connection_hops") or []],
            version=_str(data, "version"),
            port_id=_str(data, "port_id"),
            channel_id=_str(data, "channel_id"),
        )


@dataclass
class QueryChannelsResponse:
    """The result of a channels query."""

    channels: list[Channel] = field(default_factory=list)
    pagination: dict[str, Any] = field(default_factory=dict)
    height: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueryChannelsResponse:
        data = _mapping(data)
        return cls(
            channels=[Channel.from_dict(item) for item in data.get("channels") or []],
            pagination=_mapping(data.get("pagination")),
            height=_mapping(data.get("height")),
        )


@dataclass
class VersionInfo:
    """A connection version and its features."""

    identifier: str = ""
    features: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VersionInfo:
        data = _mapping(data)
        return cls(
            identifier=_str(data, "identifier"),
            features=[str(feature) for feature in data.get("features") or []],
        )


@dataclass
class CounterpartyInfo:
    """The other end of a connection."""

    client_id: str = ""
    connection_id: str = ""
    key_prefix: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CounterpartyInfo:
        data = _mapping(data)
        return cls(
            client_id=_str(data, "client_id"),
            connection_id=_str(data, "connection_id"),
            key_prefix=_str(_mapping(data.get("prefix")), "key_prefix"),
        )


@dataclass
class ConnectionInfo:
    """One IBC connection."""

    client_id: str = ""
    versions: list[VersionInfo] = field(default_factory=list)
    state: str = ""
    id: str = ""
    counterparty: CounterpartyInfo = field(default_factory=CounterpartyInfo)
    delay_period: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConnectionInfo:
        data = _mapping(data)
        return cls(
            client_id=_str(data, "client_id"),
            versions=[VersionInfo.from_dict(item) for item in data.get("versions") or []],
            state=_str(data, "state"),
            id=_str(data, "id"),
            counterparty=CounterpartyInfo.from_dict(data.get("counterparty")),
            delay_period=_str(data, "delay_period"),
        )


@dataclass
class ConnectionsQueryResult:
    """The result of a connections query."""

    connections: list[ConnectionInfo] = field(default_factory=list)
    height: dict[str, Any] = field(default_factory=dict)
    pagination: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConnectionsQueryResult:
        data = _mapping(data)
        return cls(
            connections=[ConnectionInfo.from_dict(item) for item in data.get("connections") or []],
            height=_mapping(data.get("height")),
            pagination=_mapping(data.get("pagination")),
        )


@dataclass
class ConnectionChannels:
    """The source and destination channel of an IBC link."""

    src: str = ""
    dst: str = ""


def _load_object(text: str | bytes) -> dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def parse_channels(text: str | bytes) -> QueryChannelsResponse:
    """Parse the JSON output of a channels query."""
    return QueryChannelsResponse.from_dict(_load_object(text))


def parse_connections(text: str | bytes) -> ConnectionsQueryResult:
    """Parse the JSON output of a connections query."""
    return ConnectionsQueryResult.from_dict(_load_object(text))


def find_open_channel(channels: Iterable[Channel], connection_id: str) -> Channel | None:
    """Return the first open channel whose first hop is ``connection_id``."""
    return next(
        (
            channel
            for channel in channels
            if channel.connection_hops
            and channel.connection_hops[0] == connection_id
            and channel.state == STATE_OPEN
        ),
        None,
    )