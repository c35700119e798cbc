from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Callable

import requests

from dflowkit.domain.model.errors import ApiError, MalformedResponse, NetworkError

ZERO_OUT_AMOUNT_TEXT_MARKER = "zero out amount"


def send_once(request_fn: Callable[[], requests.Response], context: str) -> requests.Response:
    try:
        return request_fn()
    except requests.RequestException as error:
        raise NetworkError(f"{context}: {error}") from error


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


def build_api_error(response: requests.Response) -> ApiError:
    body = response.text or ""
    try:
        parsed = json.loads(body) if body.strip() else None
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        raw_code = parsed.get("code")
        code = str(raw_code) if isinstance(raw_code, (str, int)) and raw_code != "" else None
        message = parsed.get("msg") or parsed.get("message") or parsed.get("error")
        if not isinstance(message, str):
            message = body.strip()
        return ApiError(response.status_code, message, code=code, body=body)

    text = body.strip()
    code = "zero_out_amount" if ZERO_OUT_AMOUNT_TEXT_MARKER in text.lower() else None
    return ApiError(response.status_code, text or str(response.reason or ""), code=code, body=body)


def read_json_payload(response: requests.Response, context: str) -> Any:
    if not is_success_status(response.status_code):
        raise build_api_error(response)

    text = response.text
    if not text or not text.strip():
        raise MalformedResponse(f"{context}: empty response body")
    try:
        return json.loads(text)
    except ValueError as error:
        raise MalformedResponse(f"{context}: failed to parse JSON: {error}") from error


def read_json_object(response: requests.Response, context: str) -> dict[str, Any]:
    payload = read_json_payload(response, context)
    if not isinstance(payload, dict):
        raise MalformedResponse(f"{context}: expected a JSON object, got {type(payload).__name__}")
    return payload


def parse_atomic_amount(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def require_base64(value: Any, context: str) -> str:
    if not isinstance(value, str) or value == "":
        raise MalformedResponse(f"{context} is missing")
    try:
        base64.b64decode(value, validate=True)
    except binascii.Error:
        raise MalformedResponse(f"{context} is not valid base64") from None
    return value
