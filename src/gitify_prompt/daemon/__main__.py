"""CLI entry point for the capture daemon.

Allows running the daemon in the foreground as a module:
    python -m gitify_prompt.daemon
"""

import signal
import sys
from types import FrameType

from gitify_prompt.daemon.pidfile import RuntimePaths
from gitify_prompt.daemon.server import DaemonServer
from gitify_prompt.errors import DaemonAlreadyRunningError
from gitify_prompt.logging import get_logger, setup_logging

logger = get_logger("daemon")


def main() -> None:
    """Main entry point for the daemon process."""
    paths = RuntimePaths.default()
    # Detached runs already have stderr redirected into the log file
    setup_logging("daemon", log_dir=paths.runtime_dir, console=sys.stderr.isatty())

    server = DaemonServer(paths=paths)

    def signal_handler(signum: int, frame: FrameType | None) -> None:
        """Handle shutdown signals gracefully."""
        sig_name = signal.Signals(signum).name
        logger.info("Received signal %s, shutting down", sig_name)
        server.request_shutdown()

    # Set up signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        server.run()
    except DaemonAlreadyRunningError as e:
        logger.error("Failed to start daemon: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        # Handle case where signal handler didn't catch it
        logger.info("Interrupted, shutting down")

    sys.exit(0)


if __name__ == "__main__":
    main()
