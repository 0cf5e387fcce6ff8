"""Header normalizer: AMQP header table -> HeaderMap (str -> str)."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from hare.app.core import SERVICE_NAME
from hare.app.domain.field_values import coerce_native

HeaderMap = dict[str, str]


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def normalize_headers(headers: Mapping[str, Any] | None) -> HeaderMap:
    """Coerce every header to text, dropping arrays, tables, byte arrays and void values."""
    if not headers:
        _log("no_headers_found")
        return {}

    header_map: HeaderMap = {}
    for key, value in headers.items():
        text = coerce_native(value)
        if text is not None:
            header_map[str(key)] = text
    return header_map
