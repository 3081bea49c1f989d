"""
Tests for the HTTP API over a simulated controller.
"""

import pytest
from fastapi.testclient import TestClient

from flirptu_driver.api.app import ERROR_INVALID_VALUE, ERROR_NOT_CONNECTED, create_app, map_exception
from flirptu_driver.config.models import AppConfig, SimulatorConfig
from flirptu_driver.ptu.driver import PTUDriver
from flirptu_driver.simulator.mock_port import MockPTUPort
from flirptu_driver.utils.exceptions import HandshakeError


BASE = "/api/v1/ptu"


@pytest.fixture
def sim():
    return MockPTUPort(SimulatorConfig(enabled=True))


@pytest.fixture
def client(sim):
    config = AppConfig()
    driver = PTUDriver(sim, config.protocol)
    return TestClient(create_app(config, driver))


@pytest.fixture
def connected(client):
    response = client.put(f"{BASE}/connect")
    assert response.json()["Value"] is True
    return client


def test_health(client):
    assert client.get(f"{BASE}/health").json()["status"] == "ok"


def test_status_disconnected(client):
    body = client.get(f"{BASE}/status").json()
    assert body["ErrorNumber"] == 0
    assert body["Value"]["connected"] is False
    assert body["Value"]["port"] == "simulator"


def test_not_connected_error(client):
    body = client.get(f"{BASE}/position").json()
    assert body["ErrorNumber"] == ERROR_NOT_CONNECTED
    assert body["Value"] is None


def test_position(connected, sim):
    sim.pan, sim.tilt = 700, -50
    value = connected.get(f"{BASE}/position").json()["Value"]
    assert (value["pan"], value["tilt"]) == (700, -50)
    assert value["state"] == "OK"


def test_set_power(connected, sim):
    body = connected.put(f"{BASE}/power", json={"axis": "T", "kind": "M", "level": "off"}).json()
    assert body["Value"] is True
    assert sim.move_power["T"] == "OFF"


def test_set_power_refused_level(connected):
    body = connected.put(f"{BASE}/power", json={"axis": "P", "kind": "M", "level": "OFF"}).json()
    assert body["ErrorNumber"] == ERROR_INVALID_VALUE


def test_set_power_unknown_level(connected):
    body = connected.put(f"{BASE}/power", json={"axis": "P", "kind": "H", "level": "MAX"}).json()
    assert body["ErrorNumber"] == ERROR_INVALID_VALUE


def test_get_power(connected):
    value = connected.get(f"{BASE}/power").json()["Value"]
    assert value["levels"]["tilt_move"] == "REGULAR"


def test_control_mode(connected, sim):
    assert connected.put(f"{BASE}/control-mode", json={"mode": "CEC"}).json()["Value"] is True
    assert connected.get(f"{BASE}/control-mode").json()["Value"] == "CEC"


def test_reset(connected, sim):
    sim.tilt = 300
    assert connected.put(f"{BASE}/reset/tilt").json()["Value"] is True
    assert sim.tilt == 0


def test_reset_unknown_target(connected):
    assert connected.put(f"{BASE}/reset/roll").json()["ErrorNumber"] == ERROR_INVALID_VALUE


def test_halt_and_poll(connected):
    assert connected.put(f"{BASE}/halt").json()["Value"] is True
    assert connected.put(f"{BASE}/poll").json()["Value"] is True


def test_readings(connected):
    assert connected.get(f"{BASE}/vdct").json()["Value"]["voltage"] == pytest.approx(12.1)
    assert connected.get(f"{BASE}/limits").json()["Value"]["pan_max"] == 27800
    assert connected.get(f"{BASE}/resolution").json()["Value"]["state"] == "OK"
    assert connected.get(f"{BASE}/corrections").json()["Value"]["pan"] == 0


def test_status_with_non_finite_state(connected):
    driver = connected.app.state.driver
    driver.state.vdct.voltage = float("inf")

    response = connected.get(f"{BASE}/status")

    assert response.status_code == 200
    assert response.json()["Value"]["state"]["vdct"]["voltage"] is None


def test_disconnect(connected):
    assert connected.put(f"{BASE}/disconnect").json()["Value"] is False
    assert connected.get(f"{BASE}/status").json()["Value"]["connected"] is False


def test_connect_failure(sim, client):
    sim.error_commands.add("FT")
    body = client.put(f"{BASE}/connect").json()
    assert body["ErrorNumber"] != 0
    assert "Handshake failed" in body["ErrorMessage"]


def test_protocol_logs(connected):
    connected.put(f"{BASE}/poll")
    body = connected.get(f"{BASE}/logs", params={"limit": 5}).json()
    assert len(body["messages"]) == 5
    assert body["stats"]["tx_count"] > 0

    assert connected.post(f"{BASE}/logs/clear").json()["status"] == "ok"
    assert connected.get(f"{BASE}/logs").json()["stats"]["total_messages"] == 0


def test_map_exception():
    number, message = map_exception(HandshakeError("no banner"))
    assert number == 0x500
    assert message == "no banner"
    assert map_exception(KeyError("x"))[0] == 0x4FF
