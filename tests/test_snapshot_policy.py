from services import snapshot_policy as policy


def test_ram_example_synthesizes_half_of_total():
    values = policy.convert_units(policy.fleet_defaults({"ram_total": 17179869184}))
    assert values["ram_total"] == 16384
    assert values["ram_used"] == 8192


def test_measured_ram_used_is_not_replaced():
    values = policy.fleet_defaults({"ram_total": 100, "ram_used": 10})
    assert values["ram_used"] == 10


def test_no_estimate_without_positive_total():
    assert policy.fleet_defaults({"ram_total": 0})["ram_used"] == 0.0
    assert policy.fleet_defaults({})["ram_used"] == 0.0
    assert policy.estimated_ram_used(None) is None


def test_fleet_defaults_fill_text_and_numbers():
    values = policy.fleet_defaults({})
    assert values["os_type"] == "unknown"
    assert values["ip_address"] == "unknown"
    for name in policy.NUMERIC_FIELDS:
        assert values[name] == 0.0


def test_fleet_defaults_do_not_mutate_input():
    measured = {"ram_total": 1024}
    policy.fleet_defaults(measured)
    assert measured == {"ram_total": 1024}


def test_single_host_defaults_only_zero_network():
    values = policy.single_host_defaults({"cpu_usage": 12.5})
    assert values["network_in"] == 0.0
    assert values["network_out"] == 0.0
    assert "ram_used" not in values


def test_convert_units():
    values = policy.convert_units({
        "ram_total": 2 * 1048576,
        "storage_total": 3 * 1073741824,
        "network_in": 1048576,
        "network_out": None,
        "cpu_cores": 8,
    })
    assert values["ram_total"] == 2.0
    assert values["storage_total"] == 3.0
    assert values["network_in"] == 1.0
    assert values["network_out"] is None
    assert values["ram_used"] is None
    assert values["cpu_cores"] == 8.0
