from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class RandomWordsRequest:
    """Parameters of a single randomness request.

    Attributes
    ----------
    key_hash : str
        Gas lane selecting the provider's proving key.
    subscription_id : str
        Subscription billed for the request.
    request_confirmations : int
        Block confirmations the provider waits before responding.
    callback_gas_limit : int
        Gas budget for delivering the callback.
    num_words : int
        Number of random words requested. Draws always ask for one.
    native_payment : bool
        Pay in the native token instead of the provider's token.
    """

    key_hash: str
    subscription_id: str
    request_confirmations: int
    callback_gas_limit: int
    num_words: int = 1
    native_payment: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "keyHash": self.key_hash,
            "subId": self.subscription_id,
            "requestConfirmations": self.request_confirmations,
            "callbackGasLimit": self.callback_gas_limit,
            "numWords": self.num_words,
            "extraArgs": {"nativePayment": self.native_payment},
        }


class RandomnessProvider(Protocol):
    """Anything able to accept a randomness request and return its id.

    The provider later delivers the result by calling
    :meth:`numbersdraw.coordinator.DrawCoordinator.fulfill_random_words`.
    """

    def request_random_words(self, request: RandomWordsRequest) -> str:
        ...
