# models/host_snapshot.py
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional


STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"


@dataclass(frozen=True)
class MetricPoint:
    """
    One timestamped scalar returned by InfluxDB.

    `field` is the name the value is published under in a snapshot
    (e.g. ram_total), not the raw InfluxDB field key, so `mem.total`
    and `disk.total` never collide once collected.
    """
    host_id: str
    measurement: str
    field: str
    timestamp: datetime
    value: object


@dataclass
class HostSnapshot:
    id: str
    name: str
    status: str
    os_type: Optional[str]
    ip_address: Optional[str]
    cpu_cores: Optional[float]
    cpu_usage: Optional[float]
    ram_total: Optional[float]
    ram_used: Optional[float]
    storage_total: Optional[float]
    storage_used: Optional[float]
    network_in: Optional[float]
    network_out: Optional[float]
    created_at: str
    last_updated: str

    def to_dict(self):
        return asdict(self)
