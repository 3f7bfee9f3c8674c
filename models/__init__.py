from .host_snapshot import HostSnapshot, MetricPoint, STATUS_OFFLINE, STATUS_ONLINE
