"""
Log redaction.
"""

from e2e_replay.security.sanitizer import DataSanitizer, RedactionMethod, SensitiveDataPattern

__all__ = [
    "DataSanitizer",
    "RedactionMethod",
    "SensitiveDataPattern",
]
