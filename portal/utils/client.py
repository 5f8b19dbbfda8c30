"""Helpers for reading reader metadata off an incoming request."""

import ipaddress
import secrets
import time

from fastapi import Request

FORWARDED_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")

# Longest textual IPv6 form, matching analytics_events.client_address
MAX_ADDRESS_LENGTH = 45

MOBILE_MARKERS = ("mobile", "android", "iphone")
TABLET_MARKERS = ("tablet", "ipad")


def _valid_address(value: str) -> str | None:
    try:
        address = str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None
    # Scoped IPv6 literals can outgrow the stored column
    return address if len(address) <= MAX_ADDRESS_LENGTH else None


def get_client_ip(request: Request, trust_forwarded: bool = True) -> str:
    """
    Best-effort client address for a request.

    Forwarded headers are client controlled and shared behind NAT or carrier
    proxies, so the value is only good enough for view deduplication. Values
    that do not parse as an IP address are skipped.
    """
    if trust_forwarded:
        for header in FORWARDED_HEADERS:
            value = request.headers.get(header)
            if value:
                address = _valid_address(value.split(",")[0])
                if address:
                    return address

    if request.client and request.client.host:
        address = _valid_address(request.client.host)
        if address:
            return address
    return "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent") or "Unknown"


def detect_device_type(user_agent: str) -> str:
    ua = user_agent.lower()
    # iPad user agents also contain "mobile"
    if any(marker in ua for marker in TABLET_MARKERS):
        return "tablet"
    if any(marker in ua for marker in MOBILE_MARKERS):
        return "mobile"
    return "desktop"


def generate_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def mask_address(address: str) -> str:
    """Keep only a prefix of the address for log lines."""
    if "." in address:
        parts = address.split(".")
        return ".".join(parts[:2]) + ".***"
    if ":" in address:
        return address.split(":")[0] + ":***"
    return address[:4] + "***"
