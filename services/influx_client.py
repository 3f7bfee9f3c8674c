"""
InfluxDB 1.x query client.

Sends one or more InfluxQL statements to the `/query` endpoint in a single
HTTP request and hands back the series of each statement in order. Any
transport, HTTP or per-statement failure is raised as InfrastructureError;
nothing here retries.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import requests

from services.errors import InfrastructureError


logger = logging.getLogger("services.influx_client")

DEFAULT_INFLUX_URL = "http://localhost:8086/query"
DEFAULT_INFLUX_DB = "telegraf"
INFLUX_TIMEOUT = 10  # seconds

_DURATION_RE = re.compile(r"^\d+(ns|u|ms|s|m|h|d|w)$")


# ---------------------------------------------------------------------
# InfluxQL helpers
# ---------------------------------------------------------------------
def validate_duration(value: str) -> str:
    value = str(value or "").strip()
    if not _DURATION_RE.match(value):
        raise ValueError(f"Invalid InfluxQL duration: {value!r}")
    return value


def quote_ident(name: str) -> str:
    return '"' + str(name).replace("\\", "\\\\").replace('"', '\\"') + '"'


def quote_literal(value: str) -> str:
    return "'" + str(value).replace("\\", "\\\\").replace("'", "\\'") + "'"


def tag_in(tag: str, values: Iterable[str]) -> str:
    """
    WHERE clause matching any of `values` for `tag`.
    A single value becomes an equality test, several become an anchored regex.
    """
    values = sorted(set(values))
    if len(values) == 1:
        return f"{quote_ident(tag)} = {quote_literal(values[0])}"
    alternatives = "|".join(re.escape(v).replace("/", "\\/") for v in values)
    return f"{quote_ident(tag)} =~ /^(?:{alternatives})$/"


def ms_to_datetime(value) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000.0, tz=timezone.utc)


def series_rows(series: dict):
    """Yield (tags, row) for every value row of one InfluxDB series."""
    tags = series.get("tags") or {}
    cols = series.get("columns") or []
    for values in series.get("values") or []:
        yield tags, dict(zip(cols, values))


# ---------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------
class InfluxClient:
    def __init__(
        self,
        url: str = DEFAULT_INFLUX_URL,
        database: str = DEFAULT_INFLUX_DB,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = INFLUX_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.database = database
        self.username = username
        self.password = password
        self.timeout = timeout
        self.session = session

    @classmethod
    def from_config(cls, config) -> "InfluxClient":
        return cls(
            url=config.get("INFLUXDB_URL", DEFAULT_INFLUX_URL),
            database=config.get("INFLUXDB_DB", DEFAULT_INFLUX_DB),
            username=config.get("INFLUXDB_USER"),
            password=config.get("INFLUXDB_PASSWORD"),
            timeout=config.get("INFLUXDB_TIMEOUT", INFLUX_TIMEOUT),
        )

    def query(self, statements: List[str]) -> List[List[dict]]:
        """
        Run all statements as one composite request.

        Returns a list parallel to `statements`; each entry is the list of
        series that statement produced (empty when it matched nothing).
        Timestamps come back as epoch milliseconds.
        """
        params = {"db": self.database, "epoch": "ms"}
        if self.username:
            params["u"] = self.username
            params["p"] = self.password or ""

        # POST body: host regexes for a large fleet overflow URL limits
        data = {"q": ";\n".join(statements)}
        caller = self.session or requests

        logger.debug("InfluxDB query (%d statements) -> %s", len(statements), self.url)
        try:
            resp = caller.post(self.url, params=params, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("InfluxDB unreachable at %s: %s", self.url, exc)
            raise InfrastructureError("InfluxDB unreachable") from exc

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            if resp.status_code >= 400:
                raise InfrastructureError(f"InfluxDB query failed: HTTP {resp.status_code}")
            raise InfrastructureError("InfluxDB query failed: invalid response")

        if resp.status_code >= 400 or payload.get("error"):
            detail = payload.get("error") or f"HTTP {resp.status_code}"
            raise InfrastructureError(f"InfluxDB query failed: {detail}")

        out = [[] for _ in statements]
        answered = set()
        for result in payload.get("results") or []:
            if not isinstance(result, dict):
                raise InfrastructureError("InfluxDB query failed: invalid response")
            sid = result.get("statement_id", 0)
            if result.get("error"):
                logger.warning("InfluxDB statement %s failed: %s", sid, result["error"])
                raise InfrastructureError(f"InfluxDB statement {sid} failed: {result['error']}")
            if 0 <= sid < len(out):
                out[sid] = result.get("series") or []
                answered.add(sid)

        # every statement gets a result entry, even one that matched nothing
        if answered != set(range(len(statements))):
            raise InfrastructureError("InfluxDB query failed: invalid response")
        return out
