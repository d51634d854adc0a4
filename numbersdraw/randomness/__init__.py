"""Outbound interface to the verifiable randomness provider."""

from .types import RandomWordsRequest, RandomnessProvider

__all__ = ["RandomWordsRequest", "RandomnessProvider"]
