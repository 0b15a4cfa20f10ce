"""Async Server List Ping client.

Fetches the status JSON from a game server and normalizes its description
into a legacy ``§``-encoded string for the MOTD parser.
"""

from __future__ import annotations

import asyncio
import json
import logging
import socket
import struct
from dataclasses import dataclass
from typing import Any

import dns.asyncresolver
import dns.exception

from motd_codes import MARKER, Directive, color_by_name

logger = logging.getLogger(__name__)

DEFAULT_PORT = 25565
DEFAULT_PROTOCOL_VERSION = 765
_TIMEOUT = 5.0
_MAX_VARINT_BYTES = 5
_MAX_PACKET_LEN = 2 * 1024 * 1024
_NEXT_STATE_STATUS = 1
_SRV_PREFIX = "_minecraft._tcp"
# Color used for structured components that set styles but no color.
_DEFAULT_COLOR = Directive.GRAY

_STYLE_FIELDS = (
    ("obfuscated", Directive.OBFUSCATED),
    ("bold", Directive.BOLD),
    ("strikethrough", Directive.STRIKETHROUGH),
    ("underlined", Directive.UNDERLINE),
    ("italic", Directive.ITALIC),
)


class StatusError(RuntimeError):
    """Base class for status query failures."""


class StatusAddressError(StatusError):
    """The host name could not be resolved."""


class StatusConnectError(StatusError):
    pass


class StatusProtocolError(StatusError):
    pass


def split_address(text: str) -> tuple[str, int | None]:
    """Split ``host``, ``host:port`` or ``[v6]:port``; port is None when absent."""
    text = text.strip()
    if text.startswith("["):
        end = text.find("]")
        if end == -1:
            raise ValueError(f"Invalid address: {text!r}")
        host, rest = text[1:end], text[end + 1:]
        if rest and not rest.startswith(":"):
            raise ValueError(f"Invalid address: {text!r}")
        port_text = rest[1:] if rest else ""
    elif text.count(":") == 1:
        host, port_text = text.split(":", 1)
    else:
        # Bare host or unbracketed IPv6 literal.
        host, port_text = text, ""

    if not host:
        raise ValueError(f"Invalid address: {text!r}")
    if not port_text:
        return host, None
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"Invalid port in address: {text!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in address: {text!r}")
    return host, port


def parse_address(text: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    host, port = split_address(text)
    return host, default_port if port is None else port


async def resolve_srv(host: str, *, timeout: float = _TIMEOUT) -> tuple[str, int] | None:
    """Look up the ``_minecraft._tcp`` SRV record for ``host``.

    Returns the best (lowest priority, then highest weight) target, or None
    when there is no usable record.
    """
    name = f"{_SRV_PREFIX}.{host}"
    try:
        answer = await dns.asyncresolver.resolve(name, "SRV", lifetime=timeout)
    except dns.exception.DNSException as exc:
        logger.debug("No SRV record for %s: %s", name, exc)
        return None
    records = sorted(answer, key=lambda r: (r.priority, -r.weight))
    if not records:
        return None
    best = records[0]
    target = best.target.to_text(omit_final_dot=True)
    if not target:
        return None
    logger.debug("SRV %s -> %s:%d", name, target, best.port)
    return target, best.port


async def resolve_address(text: str, *, timeout: float = _TIMEOUT) -> tuple[str, int]:
    """Turn user input into (host, port), consulting SRV when no port is given."""
    host, port = split_address(text)
    if port is not None:
        return host, port
    srv = await resolve_srv(host, timeout=timeout)
    if srv is not None:
        return srv
    return host, DEFAULT_PORT


def encode_varint(value: int) -> bytes:
    if not -(1 << 31) <= value < (1 << 31):
        raise ValueError(f"VarInt out of range: {value}")
    value &= 0xFFFFFFFF
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a VarInt at ``offset``; returns (value, offset after it)."""
    result = 0
    for i in range(_MAX_VARINT_BYTES):
        if offset + i >= len(data):
            raise ValueError("Truncated VarInt")
        byte = data[offset + i]
        result |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            if result & (1 << 31):
                result -= 1 << 32
            return result, offset + i + 1
    raise ValueError("VarInt is too long")


def encode_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return encode_varint(len(raw)) + raw


def build_packet(packet_id: int, payload: bytes = b"") -> bytes:
    body = encode_varint(packet_id) + payload
    return encode_varint(len(body)) + body


def build_handshake(host: str, port: int, protocol_version: int = DEFAULT_PROTOCOL_VERSION) -> bytes:
    payload = (
        encode_varint(protocol_version)
        + encode_string(host)
        + struct.pack(">H", port)
        + encode_varint(_NEXT_STATE_STATUS)
    )
    return build_packet(0x00, payload)


async def _read_varint(reader: asyncio.StreamReader) -> int:
    buf = bytearray()
    while True:
        byte = await reader.readexactly(1)
        buf += byte
        if not byte[0] & 0x80:
            return decode_varint(bytes(buf))[0]
        if len(buf) >= _MAX_VARINT_BYTES:
            raise ValueError("VarInt is too long")


async def _read_status_response(reader: asyncio.StreamReader) -> str:
    length = await _read_varint(reader)
    if not 0 < length <= _MAX_PACKET_LEN:
        raise ValueError(f"Bad packet length {length}")
    body = await reader.readexactly(length)
    packet_id, offset = decode_varint(body)
    if packet_id != 0x00:
        raise ValueError(f"Unexpected packet id {packet_id:#x}")
    str_len, offset = decode_varint(body, offset)
    if str_len < 0 or offset + str_len > len(body):
        raise ValueError("Truncated status string")
    return body[offset:offset + str_len].decode("utf-8")


def _legacy_component(component: Any, inherited: dict[str, Any], out: list[str]) -> None:
    if isinstance(component, str):
        component = {"text": component}
    elif isinstance(component, list):
        for item in component:
            _legacy_component(item, inherited, out)
        return
    elif not isinstance(component, dict):
        return

    style = dict(inherited)
    color = component.get("color")
    named = color_by_name(color) if isinstance(color, str) else None
    if named is not None:
        style["color"] = named
    for key, _ in _STYLE_FIELDS:
        if key in component:
            style[key] = bool(component[key])

    text = component.get("text")
    if isinstance(text, (str, int, float)) and str(text):
        codes = [d for key, d in _STYLE_FIELDS if style.get(key)]
        color = style.get("color")
        if color is None and codes:
            color = _DEFAULT_COLOR
        out.append(MARKER + Directive.RESET.code)
        if color is not None:
            out.append(MARKER + color.code)
        out.extend(MARKER + d.code for d in codes)
        out.append(str(text))

    extra = component.get("extra")
    if isinstance(extra, list):
        _legacy_component(extra, style, out)


def description_to_legacy(description: Any) -> str:
    """Normalize a status description into a legacy-encoded string.

    Plain strings pass through unchanged. Structured components are
    flattened; each text piece starts with ``§r`` followed by its effective
    color and styles, so every piece opens (and later closes) its own scope.
    Hex colors have no legacy code and fall back to the inherited color.
    """
    if isinstance(description, str):
        return description
    out: list[str] = []
    _legacy_component(description, {}, out)
    return "".join(out)


@dataclass
class ServerStatus:
    version_name: str
    protocol: int | None
    players_online: int | None
    players_max: int | None
    description: str
    raw: dict[str, Any]


def parse_status_json(payload: str) -> ServerStatus:
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise StatusProtocolError(f"Status response is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise StatusProtocolError("Status response is not a JSON object")
    version = data.get("version") if isinstance(data.get("version"), dict) else {}
    players = data.get("players") if isinstance(data.get("players"), dict) else {}
    return ServerStatus(
        version_name=str(version.get("name", "")),
        protocol=version.get("protocol"),
        players_online=players.get("online"),
        players_max=players.get("max"),
        description=description_to_legacy(data.get("description", "")),
        raw=data,
    )


async def _exchange(host: str, port: int, protocol_version: int) -> str:
    try:
        reader, writer = await asyncio.open_connection(host, port)
    except socket.gaierror as exc:
        raise StatusAddressError(f"Could not resolve {host}: {exc}") from exc
    except OSError as exc:
        raise StatusConnectError(f"Could not connect to {host}:{port}: {exc}") from exc
    try:
        logger.debug("Connected to %s:%d, sending handshake", host, port)
        writer.write(build_handshake(host, port, protocol_version))
        writer.write(build_packet(0x00))
        await writer.drain()
        try:
            return await _read_status_response(reader)
        except (asyncio.IncompleteReadError, ValueError) as exc:
            raise StatusProtocolError(f"Malformed status response from {host}:{port}: {exc}") from exc
    finally:
        writer.close()


async def query_status(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = _TIMEOUT,
    protocol_version: int = DEFAULT_PROTOCOL_VERSION,
) -> ServerStatus:
    """Run one status handshake against ``host:port``."""
    try:
        payload = await asyncio.wait_for(_exchange(host, port, protocol_version), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise StatusConnectError(f"Timed out querying {host}:{port}") from exc
    return parse_status_json(payload)
