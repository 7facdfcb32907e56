"""Support chat responder package."""

from .config import AppConfig, GenerationConfig, IntentConfig, RetrievalConfig

__all__ = ["AppConfig", "GenerationConfig", "IntentConfig", "RetrievalConfig"]
