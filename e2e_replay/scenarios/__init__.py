"""
Scenario file loading.
"""

from e2e_replay.scenarios.loader import ScenarioLoader

__all__ = ["ScenarioLoader"]
