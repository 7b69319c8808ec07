"""Configuration module for the Appmixer reconciler."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
