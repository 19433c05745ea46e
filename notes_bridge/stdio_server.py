"""Stdio-транспорт MCP-моста: JSON-RPC построчно через stdin/stdout.

В stdout пишутся только ответы JSON-RPC, по одному на строку. Вся
диагностика уходит в stderr через ``logging``.

Запуск::

    notes-bridge-stdio --api-url http://localhost:3001
    python -m notes_bridge --interactive
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import signal
import sys
import threading
from typing import Any, Dict, List, Optional, Sequence, Set, TextIO

from notes_bridge.core.config import BridgeConfig
from notes_bridge.core.engine import ProtocolEngine, create_engine

logger = logging.getLogger("notes_bridge.stdio_server")

_STOP = object()

INTERACTIVE_HINT = (
    "Running in interactive mode. Type your JSON-RPC requests:\n"
    'Example: {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}\n'
    "Press Ctrl+C to exit\n"
)


class StdioServer:
    """Читает строки из stdin и обрабатывает каждую в отдельной задаче.

    Чтение не ждёт завершения предыдущих обработчиков, поэтому ответы могут
    уходить не в порядке поступления запросов; связь держится на ``id``.
    """

    def __init__(
        self,
        engine: ProtocolEngine,
        *,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        interactive: bool = False,
        handle_signals: bool = True,
    ) -> None:
        self._engine = engine
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._stderr = stderr if stderr is not None else sys.stderr
        self._interactive = interactive
        self._handle_signals = handle_signals
        self._queue: Optional[asyncio.Queue[Any]] = None
        self._pending: Set[asyncio.Task[None]] = set()
        self._interrupted = False
        self._draining = False

    # --- чтение ---

    def _read_lines(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Any]") -> None:
        # Поток-демон: блокирующий readline не должен мешать выходу из процесса.
        try:
            for line in iter(self._stdin.readline, ""):
                loop.call_soon_threadsafe(queue.put_nowait, line)
        except (OSError, ValueError) as exc:
            logger.warning("stdin read failed: %s", exc)
        except RuntimeError:
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, None)
        except RuntimeError:
            # Цикл уже закрыт после сигнала остановки.
            pass

    def stop(self) -> None:
        """Прекратить чтение; незавершённые обработчики будут отменены."""
        if self._queue is None or self._interrupted:
            return
        logger.info("Received shutdown signal")
        self._interrupted = True
        if self._draining:
            # Чтение уже закончилось, serve() ждёт обработчики, а не очередь.
            for task in list(self._pending):
                task.cancel()
        else:
            self._queue.put_nowait(_STOP)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> List[int]:
        installed: List[int] = []
        if not self._handle_signals:
            return installed
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.stop)
            except (NotImplementedError, RuntimeError, ValueError) as exc:
                logger.debug("Signal handler for %s not installed: %s", signum, exc)
                continue
            installed.append(signum)
        return installed

    # --- запись ---

    def _write(self, response: Dict[str, Any]) -> None:
        # Одна запись и flush без точек await: строки ответов не перемешиваются.
        line = json.dumps(response, default=str)
        self._stdout.write(line + "\n")
        self._stdout.flush()

    def _prompt(self, text: str) -> None:
        if self._interactive:
            self._stderr.write(text)
            self._stderr.flush()

    # --- обработка ---

    async def _process(self, line: str) -> None:
        try:
            response = await self._engine.handle_line(line)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Unhandled error while processing input line")
            self._prompt("\nError occurred. Try again or press Ctrl+C to exit:\n")
            return
        if response is not None:
            self._write(response)
        if response is None or "error" not in response:
            self._prompt("\nEnter another request or press Ctrl+C to exit:\n")
        else:
            self._prompt("\nError occurred. Try again or press Ctrl+C to exit:\n")

    def _spawn(self, line: str) -> None:
        task = asyncio.create_task(self._process(line))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def serve(self) -> None:
        """Обслуживать stdin до EOF или сигнала остановки."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._queue = queue
        self._interrupted = False
        self._draining = False

        reader = threading.Thread(
            target=self._read_lines,
            args=(loop, queue),
            name="notes-bridge-stdin",
            daemon=True,
        )
        reader.start()
        installed = self._install_signal_handlers(loop)

        logger.info("MCP stdio server started, proxying to %s", self._engine.config.notes_api_url)
        self._prompt(INTERACTIVE_HINT)

        try:
            while True:
                item = await queue.get()
                if item is _STOP or item is None:
                    break
                self._spawn(item)

            self._draining = True
            if self._interrupted:
                for task in list(self._pending):
                    task.cancel()
            elif self._pending:
                logger.debug("stdin closed, waiting for %d pending request(s)", len(self._pending))
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)
        finally:
            for signum in installed:
                loop.remove_signal_handler(signum)
            self._queue = None
        logger.info("MCP stdio server stopped")

    async def run(self) -> None:
        try:
            await self.serve()
        finally:
            await self._engine.aclose()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notes-bridge-stdio",
        description="MCP stdio bridge to the video notes HTTP API.",
    )
    parser.add_argument("--api-url", help="Base URL of the notes API (env NOTES_API_URL).")
    parser.add_argument("--interactive", action="store_true", help="Print usage hints to stderr.")
    parser.add_argument("--legacy", action="store_true", help="Enable mcp/list_tools and mcp/execute.")
    parser.add_argument("--log-level", help="Logging level (env LOG_LEVEL).")
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> BridgeConfig:
    args = _build_parser().parse_args(argv)
    config = BridgeConfig.from_env()
    overrides: Dict[str, Any] = {}
    if args.api_url:
        overrides["notes_api_url"] = args.api_url
    if args.interactive:
        overrides["interactive"] = True
    if args.legacy:
        overrides["enable_legacy_methods"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level.strip().upper()
    return dataclasses.replace(config, **overrides) if overrides else config


def configure_logging(level: str) -> None:
    resolved = logging.getLevelName(level)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(
        level=resolved,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = load_config(argv)
    configure_logging(config.log_level)
    server = StdioServer(create_engine(config), interactive=config.interactive)
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
