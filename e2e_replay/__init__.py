"""
e2e-replay: AI-driven end-to-end test runner with plan learning and replay.
"""

__version__ = "0.1.0"
