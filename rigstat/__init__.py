"""
rigstat - miner telemetry agent

Polls a cgminer-compatible device, spools each reading to disk and
delivers it to a remote collector with at-least-once semantics.
"""

__version__ = "1.0.0"
