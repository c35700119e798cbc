from __future__ import annotations

from dflowkit.domain.model.types import OrderSnapshot
from dflowkit.domain.trading.api_error_classifier import ApiErrorKind, classify_api_error


class NetworkError(RuntimeError):
    """Transport failure: no HTTP response was received."""


class MalformedResponse(RuntimeError):
    """A 2xx response that was empty or could not be parsed."""


class ApiError(RuntimeError):
    def __init__(self, status_code: int, message: str, code: str | None = None, body: str = ""):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.body = body
        label = f"HTTP {status_code}"
        if code:
            label = f"{label} [{code}]"
        super().__init__(f"{label}: {message}" if message else label)

    @property
    def kind(self) -> ApiErrorKind:
        return classify_api_error(self.status_code, self.code, self.message)


class RpcError(RuntimeError):
    """JSON-RPC level error returned by the Solana node."""


class SignerError(ValueError):
    """Key material could not be loaded or a transaction could not be signed."""


class MonitorTimeout(RuntimeError):
    """The order did not reach a terminal status before the monitor deadline.

    `last_snapshot` is the last state observed on chain, or None when the
    order was never observed.
    """

    def __init__(self, message: str, last_snapshot: OrderSnapshot | None = None):
        super().__init__(message)
        self.last_snapshot = last_snapshot


class MonitorCancelled(RuntimeError):
    pass
