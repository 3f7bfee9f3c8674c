"""
Host snapshot aggregation.

Three categories of series are read for a set of hosts in one composite
InfluxDB request:

  - metadata (long window): OS, IP, core count, RAM and disk capacity
  - live gauges (short window): CPU busy %, used RAM, used root filesystem
  - network (very short window): byte counters turned into a per-second rate

Every query declares up front which snapshot field it feeds, and points
are collected per (host, category) before a host snapshot is built. The
single-host and fleet paths share this core and differ only in how a
missing category is treated and which default-fill policy applies.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from models.host_snapshot import HostSnapshot, MetricPoint, STATUS_OFFLINE, STATUS_ONLINE
from services.errors import NotFoundError, ValidationError
from services.influx_client import (
    InfluxClient,
    ms_to_datetime,
    quote_ident,
    series_rows,
    tag_in,
    validate_duration,
)
from services.snapshot_policy import (
    LIVE_FIELDS,
    convert_units,
    fleet_defaults,
    single_host_defaults,
)


logger = logging.getLogger("services.snapshot_aggregator")

METADATA = "metadata"
LIVE = "live"
NETWORK = "network"
CATEGORIES = (METADATA, LIVE, NETWORK)

HOST_TAG = "host"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def busy_percent(usage_idle) -> float:
    return 100.0 - float(usage_idle)


@dataclass(frozen=True)
class SeriesQuery:
    category: str
    measurement: str
    source_field: str
    target: str
    condition: str = ""
    convert: Optional[Callable] = None


@dataclass(frozen=True)
class QueryWindows:
    metadata: str = "30d"
    live: str = "5m"
    network: str = "2m"

    def __post_init__(self):
        for name in ("metadata", "live", "network"):
            validate_duration(getattr(self, name))

    def for_category(self, category: str) -> str:
        return getattr(self, category)


LATEST_QUERIES = (
    SeriesQuery(METADATA, "system_meta", "os_type", "os_type"),
    SeriesQuery(METADATA, "system_meta", "ip_address", "ip_address"),
    SeriesQuery(METADATA, "system", "n_cpus", "cpu_cores"),
    SeriesQuery(METADATA, "mem", "total", "ram_total"),
    SeriesQuery(METADATA, "disk", "total", "storage_total"),
    SeriesQuery(LIVE, "cpu", "usage_idle", "cpu_usage",
                condition="\"cpu\" = 'cpu-total'", convert=busy_percent),
    SeriesQuery(LIVE, "mem", "used", "ram_used"),
    SeriesQuery(LIVE, "disk", "used", "storage_used", condition="\"path\" = '/'"),
)

NET_MEASUREMENT = "net"
NET_COUNTERS = {"bytes_recv": "network_in", "bytes_sent": "network_out"}
LOOPBACK_INTERFACE = "lo"


# ---------------------------------------------------------------------
# Intermediate record
# ---------------------------------------------------------------------
@dataclass
class HostRecord:
    host_id: str
    categories: Dict[str, Dict[str, MetricPoint]] = field(default_factory=dict)

    def offer(self, category: str, point: MetricPoint):
        """
        Keep the newest point per snapshot field. On equal timestamps the
        point offered later (later in the InfluxDB response) wins.
        """
        bucket = self.categories.setdefault(category, {})
        current = bucket.get(point.field)
        if current is None or point.timestamp >= current.timestamp:
            bucket[point.field] = point

    def has(self, category: str) -> bool:
        return bool(self.categories.get(category))

    def values(self) -> dict:
        out = {}
        for category in CATEGORIES:
            for name, point in self.categories.get(category, {}).items():
                out[name] = point.value
        return out

    def metadata_time(self) -> Optional[datetime]:
        points = self.categories.get(METADATA, {}).values()
        return max((p.timestamp for p in points), default=None)


# ---------------------------------------------------------------------
# Network rate
# ---------------------------------------------------------------------
def counter_rates(samples: Iterable[Tuple[str, str, datetime, object]]) -> List[MetricPoint]:
    """
    Turn raw per-interface byte counters into one rate per (host, counter).

    Counters are summed across interfaces at each timestamp, then the rate
    between the two most recent sums is taken. A drop (counter reset or an
    interface going away) yields 0, never a negative rate.
    """
    totals = defaultdict(lambda: defaultdict(float))
    for host, counter, ts, value in samples:
        if value is None:
            continue
        totals[(host, counter)][ts] += float(value)

    points = []
    for (host, counter), by_time in totals.items():
        stamps = sorted(by_time)
        if len(stamps) < 2:
            continue
        prev, last = stamps[-2], stamps[-1]
        elapsed = (last - prev).total_seconds()
        rate = max(0.0, (by_time[last] - by_time[prev]) / elapsed)
        points.append(MetricPoint(host, NET_MEASUREMENT, NET_COUNTERS[counter], last, rate))
    return points


# ---------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------
class SnapshotAggregator:
    def __init__(
        self,
        client: InfluxClient,
        windows: Optional[QueryWindows] = None,
        fleet_policy: Callable[[dict], dict] = fleet_defaults,
        single_host_policy: Callable[[dict], dict] = single_host_defaults,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.windows = windows or QueryWindows()
        self.fleet_policy = fleet_policy
        self.single_host_policy = single_host_policy
        self.clock = clock

    # ---- entry points ------------------------------------------------
    def aggregate_one(self, host_id: str) -> HostSnapshot:
        host_id = (host_id or "").strip()
        if not host_id:
            raise ValidationError("Instance ID (hostname) is required")

        record = self.collect({host_id}).get(host_id)
        # a single instance needs metadata, live and network data together
        if record is None or not all(record.has(c) for c in CATEGORIES):
            raise NotFoundError(host_id)
        return self.build(record, self.single_host_policy)

    def aggregate_many(self, host_ids: Iterable[str]) -> List[HostSnapshot]:
        host_ids = {h for h in host_ids if h}
        if not host_ids:
            return []
        records = self.collect(host_ids)
        return [
            self.build(records[h], self.fleet_policy)
            for h in sorted(records)
            if h in host_ids
        ]

    # ---- query -------------------------------------------------------
    def statements(self, host_ids) -> List[str]:
        hosts = tag_in(HOST_TAG, host_ids)
        out = []
        for q in LATEST_QUERIES:
            where = f"time > now() - {self.windows.for_category(q.category)} AND {hosts}"
            if q.condition:
                where += f" AND {q.condition}"
            out.append(
                f"SELECT {quote_ident(q.source_field)} FROM {quote_ident(q.measurement)} "
                f"WHERE {where} GROUP BY * ORDER BY time DESC LIMIT 1"
            )

        counters = ", ".join(quote_ident(c) for c in NET_COUNTERS)
        out.append(
            f"SELECT {counters} FROM {quote_ident(NET_MEASUREMENT)} "
            f"WHERE time > now() - {self.windows.network} AND {hosts} "
            f"AND \"interface\" != '{LOOPBACK_INTERFACE}' "
            f'GROUP BY "{HOST_TAG}", "interface"'
        )
        return out

    def collect(self, host_ids) -> Dict[str, HostRecord]:
        results = self.client.query(self.statements(host_ids))
        records: Dict[str, HostRecord] = {}

        def record_for(host):
            if host not in records:
                records[host] = HostRecord(host)
            return records[host]

        for q, series in zip(LATEST_QUERIES, results):
            for s in series:
                for tags, row in series_rows(s):
                    host = tags.get(HOST_TAG)
                    value = row.get(q.source_field)
                    if not host or value is None:
                        continue
                    if q.convert:
                        value = q.convert(value)
                    point = MetricPoint(host, q.measurement, q.target, ms_to_datetime(row["time"]), value)
                    record_for(host).offer(q.category, point)

        samples = []
        for s in results[len(LATEST_QUERIES)]:
            for tags, row in series_rows(s):
                host = tags.get(HOST_TAG)
                if not host:
                    continue
                ts = ms_to_datetime(row["time"])
                for counter in NET_COUNTERS:
                    samples.append((host, counter, ts, row.get(counter)))
        for point in counter_rates(samples):
            record_for(point.host_id).offer(NETWORK, point)

        logger.debug("Collected metric records for %d of %d hosts", len(records), len(host_ids))
        return records

    # ---- snapshot ----------------------------------------------------
    def build(self, record: HostRecord, policy: Callable[[dict], dict]) -> HostSnapshot:
        measured = record.values()
        online = any(measured.get(name) is not None for name in LIVE_FIELDS)
        values = convert_units(policy(measured))
        created = record.metadata_time()

        return HostSnapshot(
            id=record.host_id,
            name=record.host_id,
            status=STATUS_ONLINE if online else STATUS_OFFLINE,
            os_type=values.get("os_type"),
            ip_address=values.get("ip_address"),
            cpu_cores=values.get("cpu_cores"),
            cpu_usage=values.get("cpu_usage"),
            ram_total=values.get("ram_total"),
            ram_used=values.get("ram_used"),
            storage_total=values.get("storage_total"),
            storage_used=values.get("storage_used"),
            network_in=values.get("network_in"),
            network_out=values.get("network_out"),
            created_at=iso_utc(created) if created else "",
            last_updated=iso_utc(self.clock()),
        )
