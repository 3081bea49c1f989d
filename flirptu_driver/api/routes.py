"""
HTTP endpoints for the pan-tilt unit.

Handlers are plain functions so FastAPI runs them in its thread pool; the
driver lock serializes access to the channel.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from flirptu_driver.api.models import (
    ControlModeRequest,
    PowerRequest,
    PTUResponse,
    make_response,
)
from flirptu_driver.protocol.commands import ResetTarget
from flirptu_driver.protocol.logger import get_protocol_logger
from flirptu_driver.ptu.driver import PTUDriver
from flirptu_driver.utils.exceptions import DriverError, InvalidValueError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/ptu", tags=["ptu"])


def get_driver(request: Request) -> PTUDriver:
    """Dependency to get the driver from app.state."""
    driver = getattr(request.app.state, "driver", None)
    if driver is None:
        raise HTTPException(status_code=503, detail="PTU driver not available")
    return driver


@router.get("/health")
def health_check():
    """Simple health check endpoint (no dependencies)."""
    return {"status": "ok", "message": "Server is running"}


# ============================================================================
# Connection
# ============================================================================

@router.get("/status", response_model=PTUResponse)
def get_status(driver: PTUDriver = Depends(get_driver)):
    """Connection flag plus the cached driver state (no device I/O)."""
    return make_response({
        "connected": driver.connected,
        "port": driver.port.name,
        "state": driver.snapshot(),
    })


@router.put("/connect", response_model=PTUResponse)
def put_connect(driver: PTUDriver = Depends(get_driver)):
    driver.connect()
    return make_response(driver.connected)


@router.put("/disconnect", response_model=PTUResponse)
def put_disconnect(driver: PTUDriver = Depends(get_driver)):
    driver.disconnect()
    return make_response(driver.connected)


@router.put("/poll", response_model=PTUResponse)
def put_poll(driver: PTUDriver = Depends(get_driver)):
    """Run one polling cycle. Value is whether the position read succeeded."""
    ok = driver.poll()
    return make_response(ok)


# ============================================================================
# Readings
# ============================================================================

@router.get("/position", response_model=PTUResponse)
def get_position(driver: PTUDriver = Depends(get_driver)):
    outcome = driver.get_position()
    if not outcome.ok:
        raise DriverError(f"Position read failed: {outcome.kind.value} {outcome.detail}".rstrip())

    position = driver.snapshot()["position"]
    logger.debug(f"GET /position -> {position}")
    return make_response(position)


@router.get("/limits", response_model=PTUResponse)
def get_limits(driver: PTUDriver = Depends(get_driver)):
    driver.get_limits()
    return make_response(driver.snapshot()["limits"])


@router.get("/resolution", response_model=PTUResponse)
def get_resolution(driver: PTUDriver = Depends(get_driver)):
    driver.get_resolution()
    return make_response(driver.snapshot()["resolution"])


@router.get("/vdct", response_model=PTUResponse)
def get_vdct(driver: PTUDriver = Depends(get_driver)):
    driver.get_vdct()
    return make_response(driver.snapshot()["vdct"])


@router.get("/corrections", response_model=PTUResponse)
def get_corrections(driver: PTUDriver = Depends(get_driver)):
    driver.get_control_mode_corrections()
    return make_response(driver.snapshot()["corrections"])


# ============================================================================
# Settings
# ============================================================================

@router.get("/power", response_model=PTUResponse)
def get_power(driver: PTUDriver = Depends(get_driver)):
    driver.refresh_power()
    return make_response(driver.snapshot()["power"])


@router.put("/power", response_model=PTUResponse)
def put_power(body: PowerRequest, driver: PTUDriver = Depends(get_driver)):
    """Set one power level. Value is False if the controller refused it."""
    level = body.power_level()
    if level is None:
        raise InvalidValueError(f"Unknown power level: {body.level}")

    ok = driver.set_power(body.axis, body.kind, level)
    logger.info(f"PUT /power {body.axis.name} {body.kind.name} {level.name} -> {ok}")
    return make_response(ok)


@router.get("/control-mode", response_model=PTUResponse)
def get_control_mode(driver: PTUDriver = Depends(get_driver)):
    mode = driver.get_control_mode()
    return make_response(mode.value if mode else None)


@router.put("/control-mode", response_model=PTUResponse)
def put_control_mode(body: ControlModeRequest, driver: PTUDriver = Depends(get_driver)):
    ok = driver.set_control_mode(body.mode)
    return make_response(ok)


# ============================================================================
# Actions
# ============================================================================

_RESET_TARGETS = {
    "pan": ResetTarget.PAN,
    "tilt": ResetTarget.TILT,
    "both": ResetTarget.BOTH,
}


@router.put("/reset/{target}", response_model=PTUResponse)
def put_reset(target: str, driver: PTUDriver = Depends(get_driver)):
    """Recalibrate 'pan', 'tilt' or 'both'. Blocks until the reset finishes."""
    reset_target = _RESET_TARGETS.get(target.lower())
    if reset_target is None:
        raise InvalidValueError(f"Unknown reset target: {target}. Must be one of {list(_RESET_TARGETS)}")

    ok = driver.reset_axis(reset_target)
    return make_response(ok)


@router.put("/halt", response_model=PTUResponse)
def put_halt(driver: PTUDriver = Depends(get_driver)):
    ok = driver.halt()
    logger.info(f"PUT /halt -> {ok}")
    return make_response(ok)


# ============================================================================
# Protocol Logs
# ============================================================================

@router.get("/logs")
def get_protocol_logs(limit: int = 100):
    """
    Get recent protocol messages.

    Args:
        limit: Maximum number of messages to return (default 100).
    """
    protocol_logger = get_protocol_logger()

    return {
        "messages": protocol_logger.get_messages(limit=limit),
        "stats": protocol_logger.get_stats()
    }


@router.post("/logs/clear")
def clear_protocol_logs():
    """Clear all protocol message logs."""
    protocol_logger = get_protocol_logger()
    protocol_logger.clear()

    logger.info("Protocol logs cleared")

    return {"status": "ok", "message": "Logs cleared"}


@router.put("/logs/enabled")
def set_logs_enabled(enabled: bool = True):
    """Enable or disable protocol logging."""
    protocol_logger = get_protocol_logger()
    protocol_logger.enabled = enabled

    logger.info(f"Protocol logging {'enabled' if enabled else 'disabled'}")

    return {"status": "ok", "enabled": enabled}
