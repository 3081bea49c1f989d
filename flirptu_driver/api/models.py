"""
Pydantic models for the HTTP API.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field

from flirptu_driver.protocol.commands import Axis, ControlMode, PowerKind, PowerLevel


class PTUResponse(BaseModel):
    """
    Response envelope returned by every endpoint.

    ErrorNumber is 0 on success.
    """
    Value: Any = Field(None, description="Response value (type varies by endpoint)")
    ErrorNumber: int = Field(0, description="Error code (0 = success, non-zero = error)")
    ErrorMessage: str = Field("", description="Error message (empty string if no error)")


class PowerRequest(BaseModel):
    """Request to set a motor power level."""
    axis: Axis = Field(..., description="'P' (pan) or 'T' (tilt)")
    kind: PowerKind = Field(..., description="'H' (hold) or 'M' (move)")
    level: str = Field(..., description="OFF, LOW, REG or HIGH")

    def power_level(self) -> Optional[PowerLevel]:
        return PowerLevel.from_reply(self.level.upper())


class ControlModeRequest(BaseModel):
    """Request to set the position control mode."""
    mode: ControlMode = Field(..., description="'COL' (open loop) or 'CEC' (encoder correction)")


def make_response(value: Any = None, error: Optional[Exception] = None) -> PTUResponse:
    """
    Build a response envelope.

    Args:
        value: Response value (ignored if error is given).
        error: Exception to report.
    """
    if error is None:
        return PTUResponse(Value=value)

    from flirptu_driver.api.app import map_exception
    error_number, error_message = map_exception(error)
    return PTUResponse(Value=None, ErrorNumber=error_number, ErrorMessage=error_message)
