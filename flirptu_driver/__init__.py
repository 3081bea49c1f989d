"""
FLIR pan-tilt unit driver.

Drives the ASCII command dialect of FLIR/Directed Perception pan-tilt
controllers over RS-232 or the controller's TCP server, and exposes the
device state through a small HTTP API.
"""

__version__ = "0.1.0"
__author__ = "FLIR PTU driver contributors"
