"""Deterministic expansion of provider randomness into winning numbers."""

from .expand import MAX_SUPPORTED_RANGE, SEED_BYTES, expand_seed, hash_seed

__all__ = [
    "MAX_SUPPORTED_RANGE",
    "SEED_BYTES",
    "expand_seed",
    "hash_seed",
]
