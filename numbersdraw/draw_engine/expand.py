"""Rejection-sampling expansion of a single random word into unique picks."""

from __future__ import annotations

import hashlib

SEED_BYTES = 32
"""Random words are 256-bit unsigned integers."""

MAX_SUPPORTED_RANGE = 255

_SEED_LIMIT = 1 << (SEED_BYTES * 8)


def hash_seed(seed: int) -> int:
    """Return the next seed: SHA-256 of the 32-byte big-endian ``seed``.

    Parameters
    ----------
    seed : int
        Current 256-bit seed value.

    Returns
    -------
    int
        Digest interpreted as a big-endian unsigned integer.
    """
    digest = hashlib.sha256(seed.to_bytes(SEED_BYTES, "big")).digest()
    return int.from_bytes(digest, "big")


def _validate(seed: int, pick_count: int, max_range: int) -> None:
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise TypeError("seed must be an integer")
    if not 0 <= seed < _SEED_LIMIT:
        raise ValueError("seed must be an unsigned 256-bit integer")
    if not 1 <= pick_count <= max_range <= MAX_SUPPORTED_RANGE:
        raise ValueError(
            "expected 1 <= pick_count <= max_range <= "
            f"{MAX_SUPPORTED_RANGE}, got pick_count={pick_count}, max_range={max_range}"
        )


def expand_seed(seed: int, pick_count: int, max_range: int) -> list[int]:
    """Expand ``seed`` into ``pick_count`` unique numbers in ``[1, max_range]``.

    Each iteration maps the current seed to ``seed % max_range + 1`` and keeps
    the value if it has not been chosen yet. The seed is re-hashed after every
    iteration whether or not the candidate was kept, so the output depends only
    on the inputs and any third party can reproduce it.

    The modulo reduction is not perfectly uniform. That bias is part of the
    published algorithm and is kept as is so historical draws stay reproducible.

    Parameters
    ----------
    seed : int
        Random word delivered by the randomness provider.
    pick_count : int
        Number of distinct values to select.
    max_range : int
        Largest selectable value.

    Returns
    -------
    list[int]
        The selected values in ascending order.

    Raises
    ------
    TypeError
        If ``seed`` is not an integer.
    ValueError
        If the seed or the format is outside the supported domain.
    """
    _validate(seed, pick_count, max_range)

    chosen: set[int] = set()
    current = seed
    while len(chosen) < pick_count:
        candidate = current % max_range + 1
        if candidate not in chosen:
            chosen.add(candidate)
        current = hash_seed(current)

    return sorted(chosen)


__all__ = ["MAX_SUPPORTED_RANGE", "SEED_BYTES", "expand_seed", "hash_seed"]
