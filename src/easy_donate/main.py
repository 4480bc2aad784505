"""Server entrypoint for the donation service."""

from __future__ import annotations

import asyncio
import signal

from .app import EasyDonateApp


async def main() -> None:
    app = EasyDonateApp()
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:  # pragma: no cover - Windows compatibility
            signal.signal(sig, lambda *_: stop_event.set())

    await app.start()
    try:
        await stop_event.wait()
    finally:
        await app.stop()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
