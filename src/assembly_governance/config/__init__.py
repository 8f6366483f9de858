"""Engine configuration."""
from __future__ import annotations

from assembly_governance.config.loader import ConfigLoader, EngineConfig

__all__ = ["ConfigLoader", "EngineConfig"]
