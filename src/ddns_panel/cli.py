"""
CLI entry point for DDNS Panel.

The runtime is assembled before uvicorn binds the port, so an unreadable
configuration file stops the process with a clear message instead of
failing inside the application startup.
"""

from __future__ import annotations

import logging
import sys

import uvicorn

from ddns_panel.config import ConfigValidationError, load_config, parse_args
from ddns_panel.errors import PersistenceError
from ddns_panel.logging_config import build_uvicorn_log_config, setup_logging
from ddns_panel.runtime import build_runtime
from ddns_panel.server import app, set_preloaded_config

logger = logging.getLogger(__name__)


def main() -> None:
    """
    Start the DDNS Panel server.

    Parse command-line arguments, load settings, load the stored panel
    configuration, start the sync worker and serve the web API.
    """
    args = parse_args()
    try:
        config = load_config(args)
    except ConfigValidationError as e:
        print(e, file=sys.stderr)  # noqa: T201
        sys.exit(1)

    setup_logging(config.logging)
    set_preloaded_config(config)

    try:
        runtime = build_runtime(config)
    except PersistenceError as e:
        logger.critical(
            'Cannot read the stored configuration "%s": %s',
            config.store.path_as_path,
            e.params.get("reason", e),
        )
        sys.exit(1)

    current, _ = runtime.service.get()
    if not current.has_credentials:
        logger.warning(
            "No login credentials set. Open the panel and save them within %d minutes.",
            runtime.window.minutes,
        )

    # The lifespan leaves a runtime attached here to its creator
    app.state.runtime = runtime
    runtime.start()
    try:
        uvicorn.run(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level=config.logging.level.lower(),
            access_log=True,
            log_config=build_uvicorn_log_config(config.logging),
        )
    finally:
        runtime.stop()


if __name__ == "__main__":
    main()
