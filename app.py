from flask import Flask
import logging
import os

from routes.instance_routes import instances_bp
from services.influx_client import DEFAULT_INFLUX_DB, DEFAULT_INFLUX_URL, INFLUX_TIMEOUT, validate_duration

# -----------------------------
# CONFIG
# -----------------------------
WINDOW_KEYS = ("HOST_DISCOVERY_WINDOW", "METADATA_WINDOW", "LIVE_WINDOW", "NETWORK_WINDOW")


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_config():
    return {
        "INFLUXDB_URL": os.environ.get("INFLUXDB_URL", DEFAULT_INFLUX_URL),
        "INFLUXDB_DB": os.environ.get("INFLUXDB_DB", DEFAULT_INFLUX_DB),
        "INFLUXDB_USER": os.environ.get("INFLUXDB_USER"),
        "INFLUXDB_PASSWORD": os.environ.get("INFLUXDB_PASSWORD"),
        "INFLUXDB_TIMEOUT": float(os.environ.get("INFLUXDB_TIMEOUT", INFLUX_TIMEOUT)),
        # Lookback windows (InfluxQL durations)
        "HOST_DISCOVERY_WINDOW": os.environ.get("HOST_DISCOVERY_WINDOW", "24h"),
        "METADATA_WINDOW": os.environ.get("METADATA_WINDOW", "30d"),
        "LIVE_WINDOW": os.environ.get("LIVE_WINDOW", "5m"),
        "NETWORK_WINDOW": os.environ.get("NETWORK_WINDOW", "2m"),
        # Report 50% of total RAM as used when used RAM was not measured
        "ESTIMATE_RAM_USED": _env_bool("ESTIMATE_RAM_USED", True),
    }


# -----------------------------
# APP INITIALIZATION
# -----------------------------
def create_app(overrides=None):
    app = Flask(__name__)
    app.config.update(load_config())
    if overrides:
        app.config.update(overrides)

    for key in WINDOW_KEYS:
        app.config[key] = validate_duration(app.config[key])

    app.register_blueprint(instances_bp)
    return app


app = create_app()


# Dev mode only
if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host="127.0.0.1", port=5050, debug=True)
