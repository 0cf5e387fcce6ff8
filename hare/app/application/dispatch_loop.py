"""
Dispatch loop: consume deliveries, resolve scripts, run them, acknowledge.

Per message: normalize headers -> resolve script -> execute -> ack.

The consumer task does the cheap part (normalize and resolve) and acks
straight away when nothing is dispatched. Resolved messages go onto a bounded
work queue drained by ``worker_count`` workers, each running one script at a
time and acking when it finishes. A full queue stalls the consumer task, so
at most ``worker_count + work_queue_size`` resolved messages are in flight.
With one worker scripts run strictly in delivery order.

Failure model:
  - Per-message conditions (no headers, missing/invalid handler value,
    missing script, spawn failure) are logged and never stop the loop.
  - Anything raised by the message stream or by ack/nack is a transport
    failure: it propagates out of ``run()`` and all tasks are cancelled.
  - Cancellation (transport failure or shutdown) terminates any script still
    running; its message is left unacked for the broker to redeliver.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterable

from loguru import logger

from hare.app.application.script_executor import ScriptExecutor, ScriptSpawnError, build_invocation
from hare.app.constants import DispatchState, SpawnFailureAction
from hare.app.core import SERVICE_NAME
from hare.app.domain.headers import normalize_headers
from hare.app.domain.models import ScriptInvocation
from hare.app.domain.script_resolver import ScriptResolver
from hare.app.ports.incoming_message import IncomingMessage


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


@dataclass(frozen=True)
class DispatchJob:
    """A resolved invocation and the delivery it settles."""

    message: IncomingMessage
    invocation: ScriptInvocation


class DispatchLoop:
    def __init__(
        self,
        resolver: ScriptResolver,
        executor: ScriptExecutor,
        *,
        worker_count: int = 1,
        work_queue_size: int = 1,
        spawn_failure_action: SpawnFailureAction = SpawnFailureAction.ACK,
    ) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        if work_queue_size < 1:
            raise ValueError("work_queue_size must be at least 1")
        self._resolver = resolver
        self._executor = executor
        self._worker_count = worker_count
        self._work_queue_size = work_queue_size
        self._spawn_failure_action = SpawnFailureAction(spawn_failure_action)
        self._state = DispatchState.IDLE

    @property
    def state(self) -> DispatchState:
        return self._state

    def _set_state(self, state: DispatchState) -> None:
        self._state = state
        _log("dispatch_state", state=state.value)

    def prepare(self, message: IncomingMessage) -> DispatchJob | None:
        """Normalize and resolve one delivery. None means there is nothing to run."""
        headers = normalize_headers(message.headers)
        _log("message_received", header_keys=sorted(headers))
        script_path = self._resolver.resolve(headers)
        if script_path is None:
            return None
        return DispatchJob(message=message, invocation=build_invocation(script_path, headers))

    async def run_job(self, job: DispatchJob) -> None:
        """Execute one job and settle its message. Spawn failures are handled here."""
        try:
            await self._executor.execute(job.invocation)
        except ScriptSpawnError as exc:
            logger.bind(
                service_name=SERVICE_NAME,
                event="script_spawn_failed",
                script_path=str(exc.script_path),
                action=self._spawn_failure_action.value,
            ).error("script spawn failed: {}", exc.reason)
            await self._settle_spawn_failure(job.message)
            return
        await job.message.ack()

    async def _settle_spawn_failure(self, message: IncomingMessage) -> None:
        if self._spawn_failure_action is SpawnFailureAction.REQUEUE:
            await message.nack(requeue=True)
        elif self._spawn_failure_action is SpawnFailureAction.REJECT:
            await message.nack(requeue=False)
        else:
            await message.ack()

    async def _consume(
        self,
        messages: AsyncIterable[IncomingMessage],
        work_queue: asyncio.Queue[DispatchJob],
    ) -> None:
        async for message in messages:
            job = self.prepare(message)
            if job is None:
                await message.ack()
                continue
            await work_queue.put(job)
        _log("message_stream_ended")

    async def _worker(self, index: int, work_queue: asyncio.Queue[DispatchJob]) -> None:
        _log("worker_started", worker=index)
        while True:
            job = await work_queue.get()
            try:
                await self.run_job(job)
            finally:
                work_queue.task_done()

    @staticmethod
    async def _first_completed(tasks: list[asyncio.Task[Any]]) -> set[asyncio.Task[Any]]:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            # re-raises the first failure
            task.result()
        return done

    async def run(self, messages: AsyncIterable[IncomingMessage]) -> None:
        """Consume until the stream ends or fails.

        Returns after draining queued jobs when the stream ends. Raises
        whatever the stream, a worker or an ack raised.
        """
        work_queue: asyncio.Queue[DispatchJob] = asyncio.Queue(maxsize=self._work_queue_size)
        workers = [
            asyncio.create_task(self._worker(index, work_queue), name=f"hare-worker-{index}")
            for index in range(self._worker_count)
        ]
        consumer = asyncio.create_task(self._consume(messages, work_queue), name="hare-consumer")
        drain: asyncio.Task[None] | None = None
        self._set_state(DispatchState.CONSUMING)
        try:
            await self._first_completed([consumer, *workers])
            drain = asyncio.create_task(work_queue.join(), name="hare-drain")
            await self._first_completed([drain, *workers])
        except asyncio.CancelledError:
            self._set_state(DispatchState.STOPPED)
            raise
        except Exception as exc:
            self._set_state(DispatchState.FAILED)
            logger.bind(service_name=SERVICE_NAME, event="dispatch_failed").error("dispatch loop failed: {}", exc)
            raise
        finally:
            pending = [task for task in (consumer, drain, *workers) if task is not None]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self._set_state(DispatchState.STOPPED)
