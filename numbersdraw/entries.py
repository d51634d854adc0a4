"""Helpers for the decimal entry encoding shared with the entry backend.

An entry is a single positive integer whose decimal digits read
``[count][pick_1][pick_2]...[pick_N]``: a one-digit ``count`` (1-9) followed by
``count`` two-digit picks. The ledger itself only rejects zero; these helpers
are for the backend that builds entries and for auditors decoding the
``BatchCommitted`` events.

The ledger accepts any positive integer, so a committed entry need not
decode. For example ``601020304050607`` declares 6 picks but carries 7 and
is rejected by :func:`decode_entry`.
"""

from __future__ import annotations

from typing import Sequence

MAX_PICKS_PER_ENTRY = 9
MAX_PICK_VALUE = 99


class EntryFormatError(ValueError):
    """Raised when picks or an encoded entry do not follow the entry format."""


def encode_entry(picks: Sequence[int]) -> int:
    """Encode ``picks`` as ``[count][pick_1]...[pick_N]``.

    Picks are encoded in the order given.

    Parameters
    ----------
    picks : Sequence[int]
        Between 1 and 9 values, each in ``0..99``.

    Returns
    -------
    int
        The encoded entry.
    """
    values = list(picks)
    if not 1 <= len(values) <= MAX_PICKS_PER_ENTRY:
        raise EntryFormatError(
            f"an entry holds 1 to {MAX_PICKS_PER_ENTRY} picks, got {len(values)}"
        )
    digits = [str(len(values))]
    for pick in values:
        if isinstance(pick, bool) or not isinstance(pick, int):
            raise EntryFormatError(f"pick {pick!r} is not an integer")
        if not 0 <= pick <= MAX_PICK_VALUE:
            raise EntryFormatError(f"pick {pick} is outside 0..{MAX_PICK_VALUE}")
        digits.append(f"{pick:02d}")
    return int("".join(digits))


def decode_entry(value: int) -> list[int]:
    """Decode an entry produced by :func:`encode_entry`.

    Raises
    ------
    EntryFormatError
        If the number of digits does not match the leading count digit.
    """
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise EntryFormatError(f"entry {value!r} is not a positive integer")
    text = str(value)
    count = int(text[0])
    body = text[1:]
    if len(body) % 2:
        raise EntryFormatError(
            f"entry {value} declares {count} picks but has an odd number "
            f"({len(body)}) of pick digits"
        )
    if len(body) != count * 2:
        raise EntryFormatError(
            f"entry {value} declares {count} picks but carries {len(body) // 2}; "
            "the leading digit must equal the number of two-digit picks"
        )
    return [int(body[i : i + 2]) for i in range(0, len(body), 2)]


def matches(entry: int, winning_numbers: Sequence[int]) -> int:
    """Return how many of the entry's picks appear in ``winning_numbers``."""
    winners = set(winning_numbers)
    return sum(1 for pick in decode_entry(entry) if pick in winners)


__all__ = [
    "EntryFormatError",
    "MAX_PICKS_PER_ENTRY",
    "MAX_PICK_VALUE",
    "decode_entry",
    "encode_entry",
    "matches",
]
