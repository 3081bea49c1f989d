"""
Device layer: handshake, driver state and typed operations.
"""

from flirptu_driver.ptu.driver import PTUDriver
from flirptu_driver.ptu.handshake import HandshakeSequence, HandshakeState
from flirptu_driver.ptu.state import PropertyState, PTUState

__all__ = [
    "PTUDriver",
    "HandshakeSequence",
    "HandshakeState",
    "PropertyState",
    "PTUState",
]
