"""Dispatcher-level constants shared across modules."""
from __future__ import annotations

from enum import Enum

ENV_VAR_PREFIX = "HARE_VAR_"


class SpawnFailureAction(str, Enum):
    """How to settle a message whose script could not be started."""

    ACK = "ack"
    REQUEUE = "requeue"
    REJECT = "reject"


class DispatchState(str, Enum):
    IDLE = "IDLE"
    CONSUMING = "CONSUMING"
    STOPPED = "STOPPED"
    FAILED = "FAILED"
