# services/host_resolver.py
import logging
from typing import Set

from services.influx_client import InfluxClient, series_rows, validate_duration


logger = logging.getLogger("services.host_resolver")

DISCOVERY_WINDOW = "24h"


class HostResolver:
    """
    Finds every host that wrote any point inside the discovery window.
    Only used to narrow the fleet query; an empty result is not an error.

    InfluxDB 1.x applies the time filter of SHOW TAG VALUES per shard group,
    so the window is a narrowing hint, not an exact bound: hosts silent for
    longer may still be listed and are dropped once nothing is collected.
    """

    def __init__(self, client: InfluxClient, window: str = DISCOVERY_WINDOW):
        self.client = client
        self.window = validate_duration(window)

    def statement(self) -> str:
        return f'SHOW TAG VALUES WITH KEY = "host" WHERE time > now() - {self.window}'

    def resolve_hosts(self) -> Set[str]:
        [series] = self.client.query([self.statement()])
        hosts = set()
        for s in series:
            for _, row in series_rows(s):
                value = row.get("value")
                if value:
                    hosts.add(str(value))
        logger.debug("Discovered %d hosts in the last %s", len(hosts), self.window)
        return hosts
