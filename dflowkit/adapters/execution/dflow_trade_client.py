from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any

import requests

from dflowkit.adapters.http.api_response import parse_atomic_amount, read_json_object, require_base64, send_once
from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.domain.model.errors import MalformedResponse
from dflowkit.domain.model.types import IntentQuote, IntentSubmission, OrderQuote, TradeRequest

DEFAULT_TRADE_API_URL = "https://dev-quote-api.dflow.net"
TRADE_HTTP_TIMEOUT_SECONDS = 10
API_KEY_HEADER = "x-api-key"


@dataclass(frozen=True)
class TradeApiConfig:
    base_url: str = DEFAULT_TRADE_API_URL
    api_key: str | None = None
    timeout_seconds: float = TRADE_HTTP_TIMEOUT_SECONDS


def build_trade_params(request: TradeRequest) -> dict[str, str]:
    params = {
        "inputMint": request.input_mint,
        "outputMint": request.output_mint,
        "amount": str(request.amount),
        "slippageBps": str(request.slippage_bps),
        "userPublicKey": request.user_public_key,
    }
    if request.venues:
        params["dexes"] = ",".join(request.venues)
    return params


class DflowTradeClient:
    """Quote, intent and submit-intent calls against the DFlow trading API.

    Requests are sent once. Retrying is left to the caller.
    """

    def __init__(self, config: TradeApiConfig, logger: LoggerPort):
        self.config = config
        self.logger = logger

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self, *, json_body: bool = False) -> dict[str, str]:
        headers: dict[str, str] = {}
        if json_body:
            headers["Content-Type"] = "application/json"
        if self.config.api_key:
            headers[API_KEY_HEADER] = self.config.api_key
        return headers

    def _get(self, path: str, params: dict[str, str], context: str) -> dict[str, Any]:
        response = send_once(
            lambda: requests.get(
                self._url(path),
                params=params,
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            ),
            context,
        )
        return read_json_object(response, context)

    def request_order(self, request: TradeRequest) -> OrderQuote:
        payload = self._get("/order", build_trade_params(request), "order request")
        transaction = require_base64(payload.get("transaction"), "order response transaction")

        quote = OrderQuote(
            raw=payload,
            transaction_base64=transaction,
            in_amount=parse_atomic_amount(payload.get("inAmount")),
            out_amount=parse_atomic_amount(payload.get("outAmount")),
        )
        self.logger.info(
            "order received",
            {
                "input_mint": request.input_mint,
                "output_mint": request.output_mint,
                "amount": request.amount,
                "in_amount": quote.in_amount,
                "out_amount": quote.out_amount,
            },
        )
        return quote

    def request_intent(self, request: TradeRequest) -> IntentQuote:
        payload = self._get("/intent", build_trade_params(request), "intent request")
        open_transaction = require_base64(payload.get("openTransaction"), "intent response openTransaction")

        intent = IntentQuote(
            raw=payload,
            open_transaction_base64=open_transaction,
            in_amount=parse_atomic_amount(payload.get("inAmount")),
            out_amount=parse_atomic_amount(payload.get("outAmount")),
        )
        self.logger.info(
            "intent received",
            {
                "input_mint": request.input_mint,
                "output_mint": request.output_mint,
                "amount": request.amount,
                "in_amount": intent.in_amount,
                "out_amount": intent.out_amount,
            },
        )
        return intent

    def submit_intent(self, intent: IntentQuote, signed_open_transaction: bytes) -> IntentSubmission:
        body = {
            "quoteResponse": intent.raw,
            "signedOpenTransaction": base64.b64encode(signed_open_transaction).decode("utf-8"),
        }
        context = "submit intent"
        response = send_once(
            lambda: requests.post(
                self._url("/submit-intent"),
                json=body,
                headers=self._headers(json_body=True),
                timeout=self.config.timeout_seconds,
            ),
            context,
        )
        payload = read_json_object(response, context)

        order_address = payload.get("orderAddress")
        program_id = payload.get("programId")
        if not isinstance(order_address, str) or not order_address:
            raise MalformedResponse("submit intent response is missing orderAddress")
        if not isinstance(program_id, str) or not program_id:
            raise MalformedResponse("submit intent response is missing programId")

        self.logger.info("intent submitted", {"order_address": order_address, "program_id": program_id})
        return IntentSubmission(order_address=order_address, program_id=program_id, raw=payload)
