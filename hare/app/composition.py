"""Dispatcher composition root: build and lifecycle-manage concrete dependencies.

Composition may: import concrete classes, call factories, store interface types,
manage high-level lifecycle.
"""
from __future__ import annotations

from typing import Any

from loguru import logger

from hare.app.application.dispatch_loop import DispatchLoop
from hare.app.application.script_executor import ScriptExecutor
from hare.app.config.settings import Settings
from hare.app.core import SERVICE_NAME
from hare.app.domain.script_resolver import ScriptResolver
from hare.app.infrastructure.messaging.factory import create_message_consumer
from hare.app.ports.message_consumer import MessageConsumer


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class DispatcherDependencies:
    """Holds wired dispatcher dependencies and their lifecycle."""

    def __init__(self, *, settings: Settings) -> None:
        self._settings = settings
        self._message_consumer: MessageConsumer | None = None
        self._dispatch_loop: DispatchLoop | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def message_consumer(self) -> MessageConsumer:
        if self._message_consumer is None:
            raise RuntimeError("message_consumer is not initialized")
        return self._message_consumer

    @property
    def dispatch_loop(self) -> DispatchLoop:
        if self._dispatch_loop is None:
            raise RuntimeError("dispatch_loop is not initialized")
        return self._dispatch_loop

    async def connect(self) -> None:
        settings = self._settings
        _log(
            "dispatcher_configured",
            script_root=settings.script_root,
            queue=settings.queue_name,
            handler_key=settings.handler_key,
            worker_count=settings.worker_count,
            spawn_failure_action=settings.spawn_failure_action.value,
        )
        self._message_consumer = create_message_consumer(settings)
        await self._message_consumer.connect()

        resolver = ScriptResolver(settings.script_root, settings.handler_key)
        self._dispatch_loop = DispatchLoop(
            resolver,
            ScriptExecutor(),
            worker_count=settings.worker_count,
            work_queue_size=settings.work_queue_size,
            spawn_failure_action=settings.spawn_failure_action,
        )

    async def close(self) -> None:
        if self._message_consumer is not None:
            try:
                await self._message_consumer.close()
            except Exception as exc:
                logger.warning("message consumer close failed: {}", exc)
            self._message_consumer = None
        self._dispatch_loop = None


def create_dispatcher_dependencies(settings: Settings | None = None) -> DispatcherDependencies:
    return DispatcherDependencies(settings=settings or Settings())
