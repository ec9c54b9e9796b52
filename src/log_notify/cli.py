"""Command line entry point.

Usage:
    log-notify init [-c PATH]       Create a default configuration file
    log-notify watch [-c PATH]      Summarize what gets appended to a log file
    log-notify capture [-c PATH]    Capture this process's errors and summarize them
"""

import argparse
import asyncio
import signal
import sys
import threading

from dotenv import find_dotenv, load_dotenv

from .config import DEFAULT_CONFIG_PATH, NotifyConfig, create_default_config, load_config
from .errors import ConfigError
from .events import EventBus
from .logging_manager import LoggingManager
from .reporting import AnalysisPrinter
from .service import CaptureService, WatchService

BANNER = """
╔═══════════════════════════════════════════════════════════════╗
║                        LOG NOTIFY                             ║
║          AI-Powered Log Monitoring & Analysis                 ║
╚═══════════════════════════════════════════════════════════════╝
"""

CAPTURE_MENU = """
📋 Commands (type and press Enter):
   [p] Process errors now
   [c] Clear error log manually
   [q] Quit

💡 Note: Errors are auto-cleared after processing
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="log-notify",
        description="Monitor logs or capture errors, summarize them with AI, and forward the summary.",
    )
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: ./.env)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create a default configuration file")
    init_parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_PATH, help="Output path")

    watch_parser = subparsers.add_parser("watch", help="Watch a log file for new content")
    watch_parser.add_argument(
        "-c", "--config", default=DEFAULT_CONFIG_PATH, help="Path to configuration file"
    )

    capture_parser = subparsers.add_parser("capture", help="Capture this process's errors")
    capture_parser.add_argument("-c", "--config", default=None, help="Path to configuration file")
    capture_parser.add_argument("--capture-file", default=None, help="Scratch file for captured errors")
    capture_parser.add_argument("--interval", type=int, default=None, help="Seconds between checks")

    return parser


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))


def _start_command_reader(queue: asyncio.Queue) -> None:
    """Forward stdin lines to ``queue`` from a daemon thread."""
    loop = asyncio.get_running_loop()

    def read_lines() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line.strip().lower())
        loop.call_soon_threadsafe(queue.put_nowait, None)

    threading.Thread(target=read_lines, name="log-notify-commands", daemon=True).start()


async def _run_watch(config: NotifyConfig, event_bus: EventBus) -> None:
    service = WatchService.from_config(config, event_bus=event_bus)
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    await service.start()
    try:
        await stop_event.wait()
        print("\n\n🛑 Received shutdown signal...")
    finally:
        await service.stop()


async def _run_capture(config: NotifyConfig, event_bus: EventBus) -> None:
    service = CaptureService.from_config(config, event_bus=event_bus)
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    commands: asyncio.Queue = asyncio.Queue()
    await service.start()
    _start_command_reader(commands)
    print("✅ System is now capturing errors written by this process")
    print(CAPTURE_MENU)

    stop_task = asyncio.create_task(stop_event.wait())
    try:
        while not stop_event.is_set():
            command_task = asyncio.create_task(commands.get())
            done, _ = await asyncio.wait(
                {stop_task, command_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if command_task not in done:
                command_task.cancel()
                break

            command = command_task.result()
            if command is None or command == "q":
                break
            if command == "p":
                print("\n🔄 Processing errors now...")
                await service.process_now()
                print(CAPTURE_MENU)
            elif command == "c":
                print("\n🗑️  Clearing error log manually...")
                await service.clear_errors()
                print("✅ Error log cleared\n")
                print(CAPTURE_MENU)
    finally:
        stop_task.cancel()
        print("\n\n🛑 Shutting down...")
        await service.stop()


def _load_capture_config(args: argparse.Namespace) -> NotifyConfig:
    if args.config:
        config = load_config(args.config, require_log_file=False)
    else:
        config = NotifyConfig()
    if args.capture_file:
        config.capture_file = args.capture_file
    if args.interval is not None:
        config.interval = args.interval
    config.validate()
    return config


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return a process exit code."""
    args = build_parser().parse_args(argv)
    load_dotenv(args.env_file or find_dotenv(usecwd=True))

    if args.command == "init":
        try:
            path = create_default_config(args.config)
        except ConfigError as e:
            print(f"❌ {e}", file=sys.stderr)
            return 1
        print(f"✅ Created default configuration file: {path}")
        return 0

    print(BANNER)
    try:
        if args.command == "watch":
            print(f"📂 Loading configuration from: {args.config}")
            config = load_config(args.config)
        else:
            config = _load_capture_config(args)
    except ConfigError as e:
        print(f"\n❌ Fatal error: {e}\n", file=sys.stderr)
        return 1

    logging_manager = LoggingManager(config.log_dir, config.log_level)
    event_bus = EventBus()
    AnalysisPrinter().attach(event_bus)
    logging_manager.attach_audit(event_bus)

    runner = _run_watch if args.command == "watch" else _run_capture
    try:
        asyncio.run(runner(config, event_bus))
    except ConfigError as e:
        print(f"\n❌ Fatal error: {e}\n", file=sys.stderr)
        return 1
    finally:
        logging_manager.shutdown()

    print("👋 Goodbye!\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
