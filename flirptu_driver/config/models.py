"""
Configuration models using Pydantic for validation.

All configuration is loaded from config.json and validated at startup.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    ip: str = Field(default="0.0.0.0", description="IP address to bind to")
    port: int = Field(default=5000, ge=1, le=65535, description="HTTP port")


class ConnectionConfig(BaseModel):
    """Byte stream configuration (serial device or TCP server)."""

    url: str = Field(
        default="socket://192.168.0.50:4000",
        description="Serial device (e.g. /dev/ttyUSB0, COM3) or pyserial URL (socket://host:port)"
    )
    baud: int = Field(default=9600, description="Baud rate (ignored for socket:// URLs)")
    connect_on_startup: bool = Field(
        default=True, description="Connect and run the handshake when the server starts"
    )


class ProtocolConfig(BaseModel):
    """Command/response exchange settings."""

    timeout_seconds: float = Field(
        default=3.0, gt=0, le=30, description="Timeout for structured exchanges"
    )
    drain_timeout_seconds: float = Field(
        default=0.1, gt=0, le=5, description="Per-byte timeout while draining residual input"
    )
    debug_drain_timeout_seconds: float = Field(
        default=1.0, gt=0, le=10, description="Per-byte timeout for diagnostic drains"
    )
    reset_timeout_seconds: float = Field(
        default=60.0, gt=0, le=300, description="Timeout for axis reset commands"
    )
    max_command_length: int = Field(
        default=64, ge=1, le=1024, description="Maximum command length in characters"
    )
    max_drain_bytes: int = Field(
        default=4096, ge=1, description="Upper bound on bytes consumed by one drain"
    )
    banner: str = Field(
        default="Initializing...*", description="Text the controller prints when a session opens"
    )

    @field_validator("banner")
    @classmethod
    def validate_banner(cls, v):
        """The banner is read up to its final '*'."""
        if not v.endswith("*"):
            raise ValueError("banner must end with '*'")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    file: Optional[str] = Field(
        default="flirptu_driver.log",
        description="Log file path (None for console only)"
    )
    max_file_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)
    backup_count: int = Field(default=5, ge=0)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SimulatorConfig(BaseModel):
    """Simulated controller configuration."""

    enabled: bool = Field(default=False, description="Use simulator instead of real hardware")
    pan_position: int = Field(default=0, description="Starting pan position (steps)")
    tilt_position: int = Field(default=0, description="Starting tilt position (steps)")
    pan_resolution: float = Field(default=46.2857, gt=0, description="Pan arc-seconds per step")
    tilt_resolution: float = Field(default=46.2857, gt=0, description="Tilt arc-seconds per step")
    pan_min: int = Field(default=-27801)
    pan_max: int = Field(default=27800)
    tilt_min: int = Field(default=-6999)
    tilt_max: int = Field(default=2333)
    hold_power: str = Field(default="REG", description="Initial hold power (OFF, LOW, REG)")
    move_power: str = Field(default="REG", description="Initial move power (OFF, LOW, REG, HIGH)")
    control_mode: str = Field(default="COL", description="Initial control mode (COL, CEC)")
    voltage: float = Field(default=12.1)
    temperatures_f: List[int] = Field(
        default_factory=lambda: [78, 81, 80],
        description="Controller, pan motor and tilt motor temperature (F)"
    )
    error_commands: List[str] = Field(
        default_factory=list,
        description="Commands answered with a '!' error line (fault injection)"
    )
    response_latency_ms: int = Field(
        default=0, ge=0, le=5000, description="Artificial response delay (ms)"
    )

    @field_validator("hold_power")
    @classmethod
    def validate_hold_power(cls, v):
        if v not in ("OFF", "LOW", "REG"):
            raise ValueError(f"Invalid hold power: {v}")
        return v

    @field_validator("move_power")
    @classmethod
    def validate_move_power(cls, v):
        if v not in ("OFF", "LOW", "REG", "HIGH"):
            raise ValueError(f"Invalid move power: {v}")
        return v

    @field_validator("control_mode")
    @classmethod
    def validate_control_mode(cls, v):
        if v not in ("COL", "CEC"):
            raise ValueError(f"Invalid control mode: {v}")
        return v

    @field_validator("temperatures_f")
    @classmethod
    def validate_temperatures(cls, v):
        if len(v) != 3:
            raise ValueError("temperatures_f needs exactly 3 values")
        return v


class AppConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    server: ServerConfig = Field(default_factory=ServerConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
