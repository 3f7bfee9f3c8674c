from flask import Blueprint, Response, current_app, jsonify

from services.errors import InfrastructureError, NotFoundError, ValidationError
from services.host_resolver import HostResolver
from services.influx_client import InfluxClient
from services.snapshot_aggregator import QueryWindows, SnapshotAggregator
from services.snapshot_policy import (
    fleet_defaults,
    fleet_defaults_without_ram_estimate,
    single_host_defaults,
)

instances_bp = Blueprint("instances", __name__)


# ============================================================
# HELPERS
# ============================================================
def _client():
    return InfluxClient.from_config(current_app.config)


def _resolver(client):
    return HostResolver(client, window=current_app.config.get("HOST_DISCOVERY_WINDOW", "24h"))


def _aggregator(client):
    cfg = current_app.config
    windows = QueryWindows(
        metadata=cfg.get("METADATA_WINDOW", "30d"),
        live=cfg.get("LIVE_WINDOW", "5m"),
        network=cfg.get("NETWORK_WINDOW", "2m"),
    )
    fleet_policy = fleet_defaults if cfg.get("ESTIMATE_RAM_USED", True) else fleet_defaults_without_ram_estimate
    return SnapshotAggregator(
        client,
        windows=windows,
        fleet_policy=fleet_policy,
        single_host_policy=single_host_defaults,
    )


def _text(body, status):
    return Response(body, status=status, mimetype="text/plain")


@instances_bp.after_request
def no_store(response):
    # every request re-reads InfluxDB; nothing in between may cache it
    response.headers["Cache-Control"] = "no-store"
    return response


# ============================================================
# ROUTES
# ============================================================
@instances_bp.get("/api/instances")
@instances_bp.get("/instances")
def api_instances():
    try:
        client = _client()
        hosts = _resolver(client).resolve_hosts()
        snapshots = _aggregator(client).aggregate_many(hosts)
        return jsonify([s.to_dict() for s in snapshots])
    except InfrastructureError as e:
        current_app.logger.exception("InfluxDB query failed")
        return jsonify({"message": "Error querying InfluxDB", "error": str(e)}), 500


@instances_bp.get("/api/instances/<path:instance_id>")
@instances_bp.get("/instances/<path:instance_id>")
def api_instance(instance_id):
    try:
        snapshot = _aggregator(_client()).aggregate_one(instance_id)
        return jsonify(snapshot.to_dict())
    except ValidationError as e:
        return _text(str(e), 400)
    except NotFoundError as e:
        return _text(str(e), 404)
    except InfrastructureError:
        current_app.logger.exception("Failed to query InfluxDB for instance '%s'", instance_id)
        return _text("An error occurred while communicating with the database.", 500)
