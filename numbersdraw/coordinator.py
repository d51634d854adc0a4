"""Round-based draw state machine around an asynchronous randomness provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, NoReturn, Optional, Sequence, Type

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import audit
from .config import Settings, load_settings
from .db.utils import dt_iso, ensure_utc
from .draw_engine import expand_seed
from .errors import (
    DrawAlreadyInProgress,
    DrawNotFound,
    DrawNotPending,
    DrawNotTimedOut,
    DuplicateFulfillment,
    IntegrityFault,
    InvalidGameFormat,
    InvalidRandomness,
    InvalidRandomnessConfig,
    RandomnessProviderError,
    RequestMismatch,
    RoundAlreadyDrawn,
    UnknownRequest,
)
from .gate import CapabilityGate
from .models import Draw, GameFormat, RandomnessConfig, RandomnessRequest
from .randomness import RandomnessProvider, RandomWordsRequest

logger = logging.getLogger(__name__)

DRAW_TIMEOUT = timedelta(hours=1)
"""Minimum age of a pending draw before it may be cancelled."""

MAX_PICK_COUNT = 9
MAX_RANGE_LIMIT = 99


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FormatSnapshot:
    """Game format values as captured for one draw."""

    pick_count: int
    max_range: int


@dataclass(frozen=True)
class DrawView:
    """Read-only copy of a round's draw record.

    An absent draw is represented by the zero-valued defaults, so callers can
    inspect ``fulfilled`` / ``active`` without a separate existence check.
    """

    round_id: str
    request_id: Optional[str] = None
    winning_numbers: tuple[int, ...] = ()
    fulfilled: bool = False
    active: bool = False
    requested_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None
    pick_count: int = 0
    max_range: int = 0
    random_word: Optional[int] = None

    @property
    def exists(self) -> bool:
        return self.request_id is not None

    @property
    def status(self) -> str:
        if self.fulfilled:
            return "fulfilled"
        if self.active:
            return "requested"
        return "none"

    def to_dict(self) -> dict:
        """JSON-ready form; the random word is a decimal string."""
        return {
            "round_id": self.round_id,
            "status": self.status,
            "request_id": self.request_id,
            "pick_count": self.pick_count,
            "max_range": self.max_range,
            "winning_numbers": list(self.winning_numbers),
            "random_word": str(self.random_word) if self.random_word is not None else None,
            "requested_at": dt_iso(self.requested_at),
            "fulfilled_at": dt_iso(self.fulfilled_at),
        }

    @classmethod
    def from_model(cls, draw: Draw) -> "DrawView":
        return cls(
            round_id=draw.round_id,
            request_id=draw.request_id,
            winning_numbers=tuple(draw.winning_numbers or ()),
            fulfilled=draw.fulfilled,
            active=draw.active,
            requested_at=ensure_utc(draw.requested_at),
            fulfilled_at=ensure_utc(draw.fulfilled_at),
            pick_count=draw.pick_count,
            max_range=draw.max_range,
            random_word=int(draw.random_word) if draw.random_word is not None else None,
        )


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_game_format(pick_count: int, max_range: int) -> None:
    """Raise :class:`InvalidGameFormat` unless ``1 <= pick_count <= 9`` and
    ``pick_count <= max_range <= 99``."""
    if not (_is_int(pick_count) and _is_int(max_range)):
        raise InvalidGameFormat(pick_count, max_range)
    if not 1 <= pick_count <= MAX_PICK_COUNT:
        raise InvalidGameFormat(pick_count, max_range)
    if not pick_count <= max_range <= MAX_RANGE_LIMIT:
        raise InvalidGameFormat(pick_count, max_range)


class DrawCoordinator:
    """Coordinates randomness requests, fulfillment and cancellation per round.

    Per round the draw moves ``none -> requested -> fulfilled``; a request
    that is never answered can be cancelled after :data:`DRAW_TIMEOUT`,
    which deletes the record and allows a fresh request for the same round.

    The coordinator never waits for the provider. :meth:`request_draw` returns
    the request id straight away and the provider later calls
    :meth:`fulfill_random_words`.
    """

    def __init__(
        self,
        session: Session,
        provider: RandomnessProvider,
        *,
        gate: Optional[CapabilityGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Create a coordinator bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active session; the caller owns the transaction boundary.
        provider : RandomnessProvider
            Outbound randomness provider, e.g. :class:`~numbersdraw.randomness.api.ProviderClient`.
        gate : Optional[CapabilityGate], default: None
            Gate for operator and pause checks; one bound to ``session`` is
            created when omitted.
        clock : Optional[Callable[[], datetime]], default: None
            Source of the current time. Defaults to UTC wall-clock time.
        settings : Optional[Settings], default: None
            Fallback game format and randomness parameters used until the
            operator stores explicit values. Loaded from the environment when
            omitted.
        """
        self._session = session
        self._provider = provider
        self._gate = gate or CapabilityGate(session)
        self._clock = clock or _utcnow
        self._settings = settings or load_settings()

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    # -------- draw lifecycle --------
    def request_draw(self, caller: str, round_id: str) -> str:
        """Ask the provider for one random word for ``round_id``.

        The current game format is copied into the new draw so later format
        changes cannot affect it. The provider is called inside the caller's
        transaction, so other writers wait for it; on SQLite the engine from
        :func:`numbersdraw.db.engine.make_engine` waits longer than the
        provider timeout before giving up on the lock.

        Returns
        -------
        str
            The provider's request id.

        Raises
        ------
        RoundAlreadyDrawn
            If the round already has a fulfilled draw.
        DrawAlreadyInProgress
            If the round has a pending draw.
        RandomnessProviderError
            If the provider rejected the request; nothing is recorded.
        """
        self._gate.authorize(caller)

        existing = Draw.get_by_round(self._session, round_id, for_update=True)
        if existing is not None:
            if existing.fulfilled:
                raise RoundAlreadyDrawn(round_id)
            raise DrawAlreadyInProgress(round_id, existing.request_id)

        snapshot = self.get_game_format()
        request = self.get_randomness_config()

        request_id = str(self._provider.request_random_words(request))
        if not request_id:
            raise RandomnessProviderError("Randomness provider returned an empty request id")
        if self._request_id_in_use(request_id):
            raise RandomnessProviderError(
                f"Randomness provider reused request id {request_id}"
            )

        requested_at = self._now()
        draw = Draw(
            round_id=round_id,
            request_id=request_id,
            pick_count=snapshot.pick_count,
            max_range=snapshot.max_range,
            active=True,
            fulfilled=False,
            winning_numbers=[],
            requested_at=requested_at,
        )
        mapping = RandomnessRequest(
            request_id=request_id, round_id=round_id, created_at=requested_at
        )
        self._session.add_all([draw, mapping])
        self._session.flush()

        audit.record_event(
            self._session,
            audit.DRAW_REQUESTED,
            {
                "round_id": round_id,
                "request_id": request_id,
                "pick_count": snapshot.pick_count,
                "max_range": snapshot.max_range,
            },
            round_id=round_id,
            request_id=request_id,
            occurred_at=requested_at,
        )
        logger.info(
            f"Draw requested for round {round_id}: request_id={request_id} "
            f"format={snapshot.pick_count}/{snapshot.max_range}"
        )
        return request_id

    def fulfill_random_words(self, request_id: str, random_values: Sequence[int]) -> list[int]:
        """Provider callback delivering randomness for ``request_id``.

        The first random value is expanded with the draw's snapshotted format
        into the winning numbers.

        Returns
        -------
        list[int]
            The winning numbers, ascending.

        Raises
        ------
        IntegrityFault
            If the request is unknown, already fulfilled, mapped to a draw with
            a different request id, or the random values are unusable. These
            indicate a miswired provider and are logged as critical; nothing is
            written.
        """
        request_id = str(request_id)
        mapping = self._lock_request(request_id)
        if mapping is None:
            self._fault(UnknownRequest, f"No draw is waiting for request {request_id}", request_id)

        draw = Draw.get_by_round(self._session, mapping.round_id, for_update=True)
        if draw is None:
            self._fault(
                UnknownRequest,
                f"Request {request_id} maps to round {mapping.round_id} without a draw",
                request_id,
            )
        if draw.fulfilled:
            self._fault(
                DuplicateFulfillment,
                f"Draw for round {draw.round_id} was already fulfilled",
                request_id,
            )
        if draw.request_id != request_id:
            self._fault(
                RequestMismatch,
                f"Round {draw.round_id} is waiting for request {draw.request_id}, "
                f"not {request_id}",
                request_id,
            )

        values = list(random_values or ())
        if not values:
            self._fault(InvalidRandomness, "No random values delivered", request_id)
        seed = values[0]
        try:
            winning_numbers = expand_seed(seed, draw.pick_count, draw.max_range)
        except (TypeError, ValueError) as exc:
            self._fault(InvalidRandomness, f"Unusable random value: {exc}", request_id)

        fulfilled_at = self._now()
        draw.fulfilled = True
        draw.active = False
        draw.winning_numbers = winning_numbers
        draw.random_word = str(seed)
        draw.fulfilled_at = fulfilled_at
        self._session.flush()

        audit.record_event(
            self._session,
            audit.DRAW_FULFILLED,
            {
                "round_id": draw.round_id,
                "request_id": request_id,
                "random_word": str(seed),
                "winning_numbers": winning_numbers,
            },
            round_id=draw.round_id,
            request_id=request_id,
            occurred_at=fulfilled_at,
        )
        logger.info(f"Draw fulfilled for round {draw.round_id}: {winning_numbers}")
        return winning_numbers

    def cancel_draw(self, caller: str, round_id: str) -> None:
        """Discard a pending draw that has waited at least :data:`DRAW_TIMEOUT`.

        This is the recovery path for a provider that never calls back. It
        remains available while the system is paused.

        Raises
        ------
        DrawNotPending
            If the round has no pending draw.
        RoundAlreadyDrawn
            If the round's draw has already been fulfilled.
        DrawNotTimedOut
            If the timeout has not elapsed yet.
        """
        self._gate.require_operator(caller)

        draw = self._cancellable_draw(round_id, Draw.get_by_round(self._session, round_id))
        request_id = draw.request_id

        # Same row order as fulfill_random_words: request mapping, then draw.
        mapping = self._lock_request(request_id)
        draw = self._cancellable_draw(
            round_id, Draw.get_by_round(self._session, round_id, for_update=True)
        )
        if draw.request_id != request_id:
            raise DrawNotPending(round_id)

        if mapping is not None:
            self._session.delete(mapping)
        self._session.delete(draw)
        self._session.flush()

        audit.record_event(
            self._session,
            audit.DRAW_CANCELLED,
            {"round_id": round_id, "request_id": request_id},
            round_id=round_id,
            request_id=request_id,
        )
        logger.warning(f"Draw for round {round_id} cancelled (request_id={request_id})")

    # -------- configuration --------
    def set_game_format(self, caller: str, pick_count: int, max_range: int) -> FormatSnapshot:
        """Change the format used by draws requested from now on."""
        self._gate.authorize(caller)
        validate_game_format(pick_count, max_range)

        row = self._session.get(GameFormat, 1)
        if row is None:
            row = GameFormat(id=1, pick_count=pick_count, max_range=max_range)
            self._session.add(row)
        else:
            row.pick_count = pick_count
            row.max_range = max_range
        self._session.flush()

        audit.record_event(
            self._session,
            audit.GAME_FORMAT_UPDATED,
            {"pick_count": pick_count, "max_range": max_range},
        )
        logger.info(f"Game format set to pick {pick_count} of {max_range}")
        return FormatSnapshot(pick_count, max_range)

    def set_randomness_config(
        self,
        caller: str,
        *,
        key_hash: str,
        subscription_id: str,
        callback_gas_limit: int,
        request_confirmations: int,
        native_payment: bool = False,
    ) -> RandomWordsRequest:
        """Store the parameters sent with future randomness requests.

        Past and pending draws are unaffected.
        """
        self._gate.authorize(caller)

        if not isinstance(key_hash, str) or not key_hash.strip():
            raise InvalidRandomnessConfig("key_hash", key_hash)
        if subscription_id is None or not str(subscription_id).strip():
            raise InvalidRandomnessConfig("subscription_id", subscription_id)
        if not _is_int(callback_gas_limit) or callback_gas_limit <= 0:
            raise InvalidRandomnessConfig("callback_gas_limit", callback_gas_limit)
        if not _is_int(request_confirmations) or request_confirmations <= 0:
            raise InvalidRandomnessConfig("request_confirmations", request_confirmations)

        key_hash = key_hash.strip()
        subscription_id = str(subscription_id).strip()
        native_payment = bool(native_payment)

        row = self._session.get(RandomnessConfig, 1)
        if row is None:
            row = RandomnessConfig(id=1)
            self._session.add(row)
        row.key_hash = key_hash
        row.subscription_id = subscription_id
        row.callback_gas_limit = callback_gas_limit
        row.request_confirmations = request_confirmations
        row.native_payment = native_payment
        self._session.flush()

        audit.record_event(
            self._session,
            audit.RANDOMNESS_CONFIG_UPDATED,
            {
                "key_hash": key_hash,
                "subscription_id": subscription_id,
                "callback_gas_limit": callback_gas_limit,
                "request_confirmations": request_confirmations,
                "native_payment": native_payment,
            },
        )
        return self.get_randomness_config()

    def get_game_format(self) -> FormatSnapshot:
        """Return the stored game format, or the configured default."""
        row = self._session.get(GameFormat, 1)
        if row is not None:
            return FormatSnapshot(row.pick_count, row.max_range)
        pick_count = self._settings.default_pick_count
        max_range = self._settings.default_max_range
        validate_game_format(pick_count, max_range)
        return FormatSnapshot(pick_count, max_range)

    def get_randomness_config(self) -> RandomWordsRequest:
        """Return the request template used for the next draw.

        Raises
        ------
        InvalidRandomnessConfig
            If neither a stored configuration nor the environment provides a
            key hash and subscription.
        """
        row = self._session.get(RandomnessConfig, 1)
        if row is not None:
            return RandomWordsRequest(
                key_hash=row.key_hash,
                subscription_id=row.subscription_id,
                request_confirmations=row.request_confirmations,
                callback_gas_limit=row.callback_gas_limit,
                num_words=1,
                native_payment=row.native_payment,
            )
        settings = self._settings
        if not settings.vrf_key_hash:
            raise InvalidRandomnessConfig("key_hash", settings.vrf_key_hash)
        if not settings.vrf_subscription_id:
            raise InvalidRandomnessConfig("subscription_id", settings.vrf_subscription_id)
        return RandomWordsRequest(
            key_hash=settings.vrf_key_hash,
            subscription_id=settings.vrf_subscription_id,
            request_confirmations=settings.vrf_request_confirmations,
            callback_gas_limit=settings.vrf_callback_gas_limit,
            num_words=1,
            native_payment=settings.vrf_native_payment,
        )

    # -------- reads --------
    def get_draw(self, round_id: str) -> DrawView:
        draw = Draw.get_by_round(self._session, round_id)
        if draw is None:
            return DrawView(round_id=round_id)
        return DrawView.from_model(draw)

    def is_draw_pending(self, round_id: str) -> bool:
        draw = Draw.get_by_round(self._session, round_id)
        return draw is not None and draw.active

    def get_winning_numbers(self, round_id: str) -> list[int]:
        """Return the winning numbers of a fulfilled draw.

        Raises
        ------
        DrawNotFound
            If the round has no fulfilled draw yet.
        """
        draw = Draw.get_by_round(self._session, round_id)
        if draw is None or not draw.fulfilled:
            raise DrawNotFound(round_id)
        return list(draw.winning_numbers)

    # -------- helpers --------
    def _lock_request(self, request_id: str) -> Optional[RandomnessRequest]:
        return self._session.scalar(
            select(RandomnessRequest)
            .where(RandomnessRequest.request_id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def _cancellable_draw(self, round_id: str, draw: Optional[Draw]) -> Draw:
        if draw is None:
            raise DrawNotPending(round_id)
        if draw.fulfilled:
            raise RoundAlreadyDrawn(round_id)
        if not draw.active:
            raise DrawNotPending(round_id)

        requested_at = ensure_utc(draw.requested_at)
        timeout_at = requested_at + DRAW_TIMEOUT
        if self._now() < timeout_at:
            raise DrawNotTimedOut(requested_at, timeout_at)
        return draw

    def _request_id_in_use(self, request_id: str) -> bool:
        if self._session.get(RandomnessRequest, request_id) is not None:
            return True
        return (
            self._session.scalar(select(Draw.id).where(Draw.request_id == request_id))
            is not None
        )

    @staticmethod
    def _fault(exc_type: Type[IntegrityFault], message: str, request_id: str) -> NoReturn:
        logger.critical(f"Randomness fulfillment rejected: {message}")
        raise exc_type(message, request_id=request_id)


__all__ = [
    "DRAW_TIMEOUT",
    "DrawCoordinator",
    "DrawView",
    "FormatSnapshot",
    "validate_game_format",
]
