"""
Persistent key-value memory.
"""

from e2e_replay.memory.store import MemoryStore

__all__ = ["MemoryStore"]
