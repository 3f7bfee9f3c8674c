"""
Units and default-fill policies shared by every snapshot path.

A policy is a plain function taking the measured values of one host
(snapshot field name -> raw value, absent when nothing was measured)
and returning a new mapping with gaps filled. Unit conversion runs after
the policy, so defaulted and measured values are converted the same way.
"""

from functools import partial


BYTES_PER_MB = 1024 ** 2
BYTES_PER_GB = 1024 ** 3

# Placeholder share of total RAM reported when used RAM was not measured.
RAM_USED_ESTIMATE_RATIO = 0.5

UNKNOWN = "unknown"

LIVE_FIELDS = ("cpu_usage", "ram_used", "storage_used", "network_in", "network_out")
TEXT_FIELDS = ("os_type", "ip_address")
NUMERIC_FIELDS = (
    "cpu_cores",
    "cpu_usage",
    "ram_total",
    "ram_used",
    "storage_total",
    "storage_used",
    "network_in",
    "network_out",
)

_MB_FIELDS = ("ram_total", "ram_used", "network_in", "network_out")
_GB_FIELDS = ("storage_total", "storage_used")


def bytes_to_mb(value):
    if value is None:
        return None
    return float(value) / BYTES_PER_MB


def bytes_to_gb(value):
    if value is None:
        return None
    return float(value) / BYTES_PER_GB


def estimated_ram_used(ram_total):
    """Synthesized used-RAM figure in bytes, or None when total is unknown."""
    try:
        total = float(ram_total)
    except (TypeError, ValueError):
        return None
    if total <= 0:
        return None
    return total * RAM_USED_ESTIMATE_RATIO


def fleet_defaults(values: dict, estimate_ram_used: bool = True) -> dict:
    """Fill every gap so a fleet listing never carries nulls."""
    out = dict(values)

    if out.get("ram_used") is None and estimate_ram_used:
        estimate = estimated_ram_used(out.get("ram_total"))
        if estimate is not None:
            out["ram_used"] = estimate

    for name in NUMERIC_FIELDS:
        if out.get(name) is None:
            out[name] = 0.0
    for name in TEXT_FIELDS:
        if out.get(name) is None:
            out[name] = UNKNOWN
    return out


fleet_defaults_without_ram_estimate = partial(fleet_defaults, estimate_ram_used=False)


def single_host_defaults(values: dict) -> dict:
    """Only zero the network rates; a quiet link is not missing data."""
    out = dict(values)
    for name in ("network_in", "network_out"):
        if out.get(name) is None:
            out[name] = 0.0
    return out


def convert_units(values: dict) -> dict:
    out = dict(values)
    for name in _MB_FIELDS:
        out[name] = bytes_to_mb(out.get(name))
    for name in _GB_FIELDS:
        out[name] = bytes_to_gb(out.get(name))
    for name in ("cpu_cores", "cpu_usage"):
        if out.get(name) is not None:
            out[name] = float(out[name])
    for name in TEXT_FIELDS:
        if out.get(name) is not None:
            out[name] = str(out[name])
    return out
