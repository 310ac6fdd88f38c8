"""
Language model client and oracle.
"""

from e2e_replay.models.openai_client import OpenAIClient
from e2e_replay.models.oracle import LLMOracle, ParsedOk, ParseFailed, decode_json_payload

__all__ = [
    "OpenAIClient",
    "LLMOracle",
    "ParsedOk",
    "ParseFailed",
    "decode_json_payload",
]
