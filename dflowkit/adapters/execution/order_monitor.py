from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable, Protocol

from solders.transaction import VersionedTransaction

from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.domain.model.errors import MalformedResponse, MonitorCancelled, MonitorTimeout
from dflowkit.domain.model.types import IntentSubmission, OrderSnapshot
from dflowkit.domain.trading.order_account import decode_order_account

MIN_POLL_INTERVAL_SECONDS = 0.05
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_MONITOR_TIMEOUT_SECONDS = 120.0


class OrderTracker(Protocol):
    def poll(self) -> OrderSnapshot | None: ...


class OrderStateSource(Protocol):
    def track(self, submission: IntentSubmission, signed_open_transaction: bytes) -> OrderTracker: ...


class OrderChainReader(Protocol):
    def get_signature_status(self, signature: str) -> dict[str, Any] | None: ...

    def is_blockhash_valid(self, blockhash: str) -> bool: ...

    def get_account_data(self, address: str) -> bytes | None: ...

    def get_signatures_for_address(self, address: str, limit: int = 10) -> list[dict[str, Any]]: ...


class ChainOrderTracker:
    """Follows one order: first the open transaction, then the order account."""

    def __init__(self, chain: OrderChainReader, submission: IntentSubmission, signed_open_transaction: bytes):
        try:
            tx = VersionedTransaction.from_bytes(signed_open_transaction)
        except Exception:
            raise MalformedResponse("signed open transaction could not be decoded") from None
        if not tx.signatures:
            raise MalformedResponse("signed open transaction carries no signature")

        self.chain = chain
        self.order_address = submission.order_address
        self.open_signature = str(tx.signatures[0])
        self.blockhash = str(tx.message.recent_blockhash)
        self.open_confirmed = False
        self.last_snapshot: OrderSnapshot | None = None

    def _poll_open_transaction(self) -> OrderSnapshot | None:
        status = self.chain.get_signature_status(self.open_signature)
        if status is None:
            if self.chain.is_blockhash_valid(self.blockhash):
                return None
            # the transaction may have landed right before the blockhash expired
            status = self.chain.get_signature_status(self.open_signature)
            if status is None:
                return OrderSnapshot(status="OPEN_EXPIRED")

        error = status.get("err")
        if error is not None:
            return OrderSnapshot(status="OPEN_FAILED", transaction_error=json.dumps(error))
        if status.get("confirmationStatus") in ("confirmed", "finalized"):
            self.open_confirmed = True
        return None

    def _resolve_unseen_account(self) -> OrderSnapshot | None:
        # the open transaction created the account, so a later successful
        # transaction on the address means it was closed before our first read
        for entry in self.chain.get_signatures_for_address(self.order_address):
            signature = entry.get("signature")
            if isinstance(signature, str) and signature != self.open_signature and entry.get("err") is None:
                return OrderSnapshot(status="CLOSED", fills_observed=False, close_signature=signature)
        return None

    def poll(self) -> OrderSnapshot | None:
        if not self.open_confirmed:
            opening = self._poll_open_transaction()
            if opening is not None or not self.open_confirmed:
                return opening

        data = self.chain.get_account_data(self.order_address)
        if data is None:
            if self.last_snapshot is None:
                return self._resolve_unseen_account()
            # account closed and reclaimed, the last observed fills are final
            return OrderSnapshot(status="CLOSED", fills=list(self.last_snapshot.fills))

        snapshot = decode_order_account(data)
        self.last_snapshot = snapshot
        return snapshot


class ChainOrderStateSource:
    def __init__(self, chain: OrderChainReader):
        self.chain = chain

    def track(self, submission: IntentSubmission, signed_open_transaction: bytes) -> ChainOrderTracker:
        return ChainOrderTracker(self.chain, submission, signed_open_transaction)


class OrderMonitor:
    def __init__(
        self,
        source: OrderStateSource,
        logger: LoggerPort,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout_seconds: float = DEFAULT_MONITOR_TIMEOUT_SECONDS,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.source = source
        self.logger = logger
        self.poll_interval_seconds = max(poll_interval_seconds, MIN_POLL_INTERVAL_SECONDS)
        self.timeout_seconds = timeout_seconds
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock

    def cancel(self) -> None:
        self.cancel_event.set()

    def wait_for_terminal(self, submission: IntentSubmission, signed_open_transaction: bytes) -> OrderSnapshot:
        tracker = self.source.track(submission, signed_open_transaction)
        deadline = self.clock() + self.timeout_seconds
        last_snapshot: OrderSnapshot | None = None
        observations = 0

        while True:
            if self.cancel_event.is_set():
                raise MonitorCancelled(f"order monitor cancelled for {submission.order_address}")

            snapshot = tracker.poll()
            observations += 1
            if snapshot is not None:
                changed = (
                    last_snapshot is None
                    or snapshot.status != last_snapshot.status
                    or len(snapshot.fills) != len(last_snapshot.fills)
                )
                if changed:
                    self.logger.info(
                        "order status observed",
                        {
                            "order_address": submission.order_address,
                            "status": snapshot.status,
                            "fills": len(snapshot.fills),
                        },
                    )
                last_snapshot = snapshot
                if snapshot.is_terminal:
                    return snapshot

            remaining = deadline - self.clock()
            if remaining <= 0:
                last_status = last_snapshot.status if last_snapshot is not None else "UNOBSERVED"
                raise MonitorTimeout(
                    f"order {submission.order_address} not terminal after {self.timeout_seconds}s "
                    f"({observations} polls, last status {last_status})",
                    last_snapshot=last_snapshot,
                )
            self.logger.debug(
                "order not terminal yet",
                {"order_address": submission.order_address, "remaining_seconds": round(remaining, 3)},
            )
            if self.cancel_event.wait(min(self.poll_interval_seconds, remaining)):
                raise MonitorCancelled(f"order monitor cancelled for {submission.order_address}")
