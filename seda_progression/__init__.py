"""
seda-progression: XP, levels, badges and virtual credits for seda.fm.

Quick start::

    from seda_progression import build_progression_service

    service = build_progression_service()
    await service.simulate_fan_support("fan-1", "tip", 10)
"""

from seda_progression.modules.progression import (
    ActionEvent,
    ActionType,
    ProgressionService,
    ProgressionStore,
    UserProgression,
    build_progression_service,
)

__version__ = "0.1.0"

__all__ = [
    "ActionEvent",
    "ActionType",
    "ProgressionService",
    "ProgressionStore",
    "UserProgression",
    "build_progression_service",
    "__version__",
]
