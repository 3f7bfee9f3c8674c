from datetime import datetime, timezone

import pytest

from services.snapshot_aggregator import LATEST_QUERIES, NET_COUNTERS


BASE_MS = 1_700_000_000_000


class FakeInflux:
    """
    Stands in for InfluxClient. Latest-value points and raw net samples are
    laid out per statement the way InfluxDB's /query answers them.
    """

    def __init__(self, points=(), net=(), error=None):
        self.points = list(points)
        self.net = list(net)
        self.error = error
        self.calls = []

    def query(self, statements):
        self.calls.append(list(statements))
        if self.error:
            raise self.error

        out = []
        for q in LATEST_QUERIES:
            series = []
            for measurement, field, host, ts, value, *extra in self.points:
                if (measurement, field) != (q.measurement, q.source_field):
                    continue
                tags = {"host": host}
                if extra:
                    tags.update(extra[0])
                series.append({
                    "name": measurement,
                    "tags": tags,
                    "columns": ["time", field],
                    "values": [[ts, value]],
                })
            out.append(series)

        by_series = {}
        for host, interface, ts, recv, sent in self.net:
            by_series.setdefault((host, interface), []).append([ts, recv, sent])
        out.append([
            {
                "name": "net",
                "tags": {"host": host, "interface": interface},
                "columns": ["time", *NET_COUNTERS],
                "values": rows,
            }
            for (host, interface), rows in by_series.items()
        ])
        return out


def complete_host(host, ts=BASE_MS):
    points = [
        ("system_meta", "os_type", host, ts, "ubuntu"),
        ("system_meta", "ip_address", host, ts, "10.0.0.5"),
        ("system", "n_cpus", host, ts, 4),
        ("mem", "total", host, ts, 17179869184),
        ("disk", "total", host, ts, 107374182400, {"path": "/"}),
        ("cpu", "usage_idle", host, ts, 75.0, {"cpu": "cpu-total"}),
        ("mem", "used", host, ts, 4294967296),
        ("disk", "used", host, ts, 53687091200, {"path": "/"}),
    ]
    net = [
        (host, "eth0", ts - 10_000, 0, 0),
        (host, "eth0", ts, 10 * 1048576, 5 * 1048576),
    ]
    return points, net


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def influx():
    return FakeInflux


@pytest.fixture
def host_data():
    return complete_host
