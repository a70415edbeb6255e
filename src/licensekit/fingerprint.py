"""
Machine fingerprint generation.

The fingerprint is the SHA-256 hex digest of a canonical JSON object built
from host signals that survive reboots and application reinstalls. The
protocols treat it as an opaque string.
"""

import hashlib
import json
import os
import platform
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from licensekit.common.logging import get_logger

logger = get_logger("fingerprint")


@dataclass(frozen=True)
class FingerprintResult:
    """Fingerprint hash plus the signals it was derived from."""

    hash: str
    details: dict[str, Any] = field(default_factory=dict)


FingerprintSource = Callable[[], str]


def _total_memory() -> Optional[int]:
    try:
        return os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        # not exposed on this platform
        return None


def collect_signals() -> dict[str, Any]:
    """Gather hardware-stable host signals."""
    return {
        "platform": platform.system(),
        "release": platform.release(),
        "machine": platform.machine(),
        "processor": platform.processor(),
        "cores": os.cpu_count(),
        "memory": _total_memory(),
        "timezone": time.tzname[0],
        "node": f"{uuid.getnode():012X}",
    }


def fingerprint_hash(signals: dict[str, Any]) -> str:
    """Hash signals deterministically (sorted keys, compact separators)."""
    canonical = json.dumps(signals, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def generate_fingerprint() -> FingerprintResult:
    """Fingerprint the current machine."""
    signals = collect_signals()
    return FingerprintResult(hash=fingerprint_hash(signals), details=signals)


def current_fingerprint() -> str:
    """Default fingerprint source for the protocols."""
    return generate_fingerprint().hash


def resolve_fingerprint(supplied: Optional[str], source: FingerprintSource) -> str:
    """
    Use the caller's fingerprint, else ask the source.

    A failing source does not abort the operation: a random per-call id is
    substituted instead.
    """
    if supplied and supplied.strip():
        return supplied
    try:
        return source()
    except Exception as exc:
        logger.warning("Fingerprint generation failed, using a random id: %s", exc)
        return uuid.uuid4().hex
