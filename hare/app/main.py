import asyncio
import signal

from loguru import logger

from hare.app.composition import create_dispatcher_dependencies
from hare.app.config.settings import Settings
from hare.app.core import SERVICE_NAME
from hare.app.core.logging import configure_logging


def _log(event: str, **kwargs) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def run_dispatcher(settings: Settings) -> None:
    dependencies = create_dispatcher_dependencies(settings)
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()
    installed: list[signal.Signals] = []
    try:
        await dependencies.connect()
        consumer = dependencies.message_consumer
        run_task = asyncio.create_task(dependencies.dispatch_loop.run(consumer.messages()))

        def request_shutdown() -> None:
            if not shutdown.is_set():
                _log("shutdown_signal")
                shutdown.set()
                run_task.cancel()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, request_shutdown)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                pass

        _log("dispatcher_started")
        try:
            await run_task
        except asyncio.CancelledError:
            if not shutdown.is_set():
                raise
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await dependencies.close()
        _log("dispatcher_stopped")


def main() -> None:
    settings = Settings()
    configure_logging(settings)
    try:
        asyncio.run(run_dispatcher(settings))
    except KeyboardInterrupt:
        _log("dispatcher_interrupted")
    except Exception as e:
        logger.exception("dispatcher failed: {}", e)
        raise


if __name__ == "__main__":
    main()
