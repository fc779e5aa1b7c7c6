"""DepNest - reproducible npm-style dependency installer.

    Returns:
        int: Exit code (0 when every package installed or was already present)
"""
import logging
import os
import signal
import sys
import threading

from args import parse_args
from constants import ExitCodes
from cli_config import build_config
from common.errors import ConfigError, LockfileError, ManifestError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from orchestrator import run_install

logger = logging.getLogger(__name__)


def _setup_logging(args) -> None:
    """Configure logging based on CLI arguments."""
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ["DEPNEST_LOG_LEVEL"] = str(args.LOG_LEVEL).upper()
    configure_logging()

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def _install_signal_handlers(cancel_event: threading.Event) -> None:
    """First SIGINT/SIGTERM requests a clean cancel; a second one aborts."""
    def _handler(signum, _frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Signal %s received; finishing in-flight packages and stopping", signum)
        cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handler)
        except ValueError:
            # Not on the main thread (embedded use); cancellation stays manual.
            logger.debug("Cannot install handler for signal %s", sig)


def _print_summary(result) -> None:
    report = result.report
    for outcome in report.failed:
        print(f"  FAILED {outcome.name}@{outcome.version}: [{outcome.error_kind}] {outcome.reason}")
    for failure in report.resolution_failures:
        print(f"  UNRESOLVED {failure.requirement}: [{failure.kind}] {failure.reason}")
    print(f"{report.summary()}")
    if result.changes is not None:
        print(f"lock: {result.changes.summary()}"
              + (" (written)" if result.lock_written else ""))
    if result.lock_error is not None:
        print(f"lock: NOT written: {result.lock_error.message}")


def install(args) -> int:
    """Run the install command and return the process exit status."""
    try:
        config = build_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e.message)
        return ExitCodes.FILE_ERROR.value

    if is_debug_enabled(logger):
        logger.debug(
            "Effective configuration",
            extra=extra_context(event="config", component="cli", action="install", config=repr(config))
        )

    cancel_event = threading.Event()
    _install_signal_handlers(cancel_event)
    try:
        result = run_install(config, cancel_event=cancel_event)
    except (ManifestError, LockfileError) as e:
        logger.error("%s", e.message)
        return ExitCodes.FILE_ERROR.value

    report_path = getattr(args, "REPORT", None)
    if report_path:
        try:
            with open(report_path, "w", encoding="utf-8") as fh:
                fh.write(result.report.to_json() + "\n")
            logger.info("Install report written to %s", report_path)
        except OSError as e:
            logger.error("Could not write report %s: %s", report_path, e)
            return ExitCodes.FILE_ERROR.value

    if not getattr(args, "QUIET", False):
        _print_summary(result)
    return result.exit_code()


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)
    if args.COMMAND == "install":
        code = install(args)
    else:
        logger.error("Unknown command: %s", args.COMMAND)
        code = ExitCodes.FILE_ERROR.value
    sys.exit(code)


if __name__ == "__main__":
    main()
