"""Configuration module."""

from yogaflow.config.constants import FLOW, FlowConstants
from yogaflow.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "FlowConstants", "FLOW"]
