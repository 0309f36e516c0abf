"""Line input for the async REPLs."""

import asyncio
import threading

from rich.console import Console
from rich.prompt import Prompt


async def ask_line(prompt: str, console: Console) -> str:
    """Read one line of input without blocking the event loop.

    The read runs in a daemon thread, so when Ctrl-C cancels the waiting task
    the process can exit without the line ever being entered.

    Raises:
        EOFError: If standard input is closed
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _deliver(line: str | None, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(line or "")

    def _read() -> None:
        try:
            line = Prompt.ask(prompt, console=console)
        except Exception as e:
            loop.call_soon_threadsafe(_deliver, None, e)
        else:
            loop.call_soon_threadsafe(_deliver, line, None)

    threading.Thread(target=_read, name="repl-input", daemon=True).start()
    return await future
