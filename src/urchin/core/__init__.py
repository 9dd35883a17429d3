"""
Core module - configuration, logging, shared types.

Components:
- config: Settings management via pydantic-settings
- types: Shared data structures (Skill, ToolJob, ActionResult, etc.)
- background: Fire-and-forget task runner with its own error channel
- logging: Structured logging setup
"""

from urchin.core.config import Settings
from urchin.core.types import ActionResult, Skill, ToolJob

__all__ = ["Settings", "ActionResult", "Skill", "ToolJob"]
