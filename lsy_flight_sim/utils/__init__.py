"""Utility module."""

from lsy_flight_sim.utils.utils import clamp, config_hash, load_config

__all__ = ["clamp", "config_hash", "load_config"]
