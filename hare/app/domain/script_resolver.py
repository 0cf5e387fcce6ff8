"""Script resolver: maps the handler header of a message to an executable path.

The handler value is joined directly onto the script root, so the only thing
standing between a producer and path traversal is ``is_valid_script_name``.
It accepts ASCII letters and digits and nothing else: no ``.``, no ``/``, no
separators, no whitespace, no empty names.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from hare.app.core import SERVICE_NAME

# ASCII only, narrower than Unicode alphanumerics: the name is joined onto the
# script root as a filename, where lookalike letters and normalization forms
# would resolve to different files.
_SCRIPT_NAME_RE = re.compile(r"[A-Za-z0-9]+")


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def is_valid_script_name(value: str) -> bool:
    return _SCRIPT_NAME_RE.fullmatch(value) is not None


class ScriptResolver:
    """Resolves ``headers[handler_key]`` to ``<script_root>/<value>``."""

    def __init__(self, script_root: str | Path, handler_key: str) -> None:
        self._script_root = Path(script_root)
        self._handler_key = handler_key

    @property
    def script_root(self) -> Path:
        return self._script_root

    @property
    def handler_key(self) -> str:
        return self._handler_key

    def resolve(self, headers: Mapping[str, str]) -> Path | None:
        """Return the script path, or None when nothing should be dispatched."""
        value = headers.get(self._handler_key)
        if value is None:
            _log("handler_key_missing", handler_key=self._handler_key)
            return None

        if not is_valid_script_name(value):
            _log("handler_value_rejected", handler_key=self._handler_key, value=value)
            return None

        _log("message_type", value=value)
        script_path = self._script_root / value
        if not script_path.is_file():
            _log("script_not_found", script_path=str(script_path))
            return None

        _log("script_found", script_path=str(script_path))
        return script_path
