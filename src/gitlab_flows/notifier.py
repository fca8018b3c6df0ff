"""Webhook notifier used to post the overall weekly summary."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .errors import TransportError

logger = logging.getLogger(__name__)


def post_webhook(url: str, text: str, session: Optional[requests.Session] = None) -> int:
    """POST ``{"text": text}`` to ``url`` and return the HTTP status code.

    Raises:
        TransportError: If the webhook cannot be reached or answers with a non-2xx status.
    """
    http = session or requests.Session()
    try:
        response = http.post(url, json={"text": text})
    except requests.RequestException as exc:
        raise TransportError(f"Webhook request failed: {exc.__class__.__name__}") from exc

    if not 200 <= response.status_code < 300:
        raise TransportError(
            f"Webhook request failed: {response.status_code} {response.text}",
            status_code=response.status_code,
            body=response.text,
        )

    logger.info("Posted summary to webhook", extra={"status_code": response.status_code})
    return response.status_code
