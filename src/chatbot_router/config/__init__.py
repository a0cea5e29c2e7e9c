"""Configuration module"""
from .settings import RouterSettings, get_settings

__all__ = ["RouterSettings", "get_settings"]
