class SnapshotError(Exception):
    """Base class for failures while building host snapshots."""


class ValidationError(SnapshotError):
    """Request is missing a required identifier."""


class NotFoundError(SnapshotError):
    """Identifier is well formed but no data exists for it."""

    def __init__(self, host_id):
        super().__init__(f"Instance with ID '{host_id}' not found")
        self.host_id = host_id


class InfrastructureError(SnapshotError):
    """InfluxDB could not be reached or rejected the query."""
