import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import http.client as http_client

from .config import DEFAULT_CONFIG_FILE, MigratorConfig, load_config
from .core.coordinator import Coordinator
from .errors import ConfigError, RegistrationError, TokenError

LOG_FILE = "import-export.log"
ERROR_LOG_FILE = "import-export-error.log"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2
EXIT_INTERRUPTED = 130

EPILOG = """examples:
  %(prog)s --export-apps    exports all applications
  %(prog)s --import-apps    import exported application zips
"""


def configure_logging(debug: bool, log_dir: Optional[Path]) -> None:
    level = logging.DEBUG if debug else logging.INFO
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    handlers: List[logging.Handler] = [console]

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        everything = logging.FileHandler(log_dir / LOG_FILE, encoding="utf-8")
        everything.setLevel(logging.DEBUG)
        errors = logging.FileHandler(log_dir / ERROR_LOG_FILE, encoding="utf-8")
        errors.setLevel(logging.ERROR)
        handlers += [everything, errors]

    logging.basicConfig(
        level=logging.DEBUG if log_dir is not None else level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    if debug:
        http_client.HTTPConnection.debuglevel = 1  # type: ignore[attr-defined]
        for noisy in ("urllib3", "requests"):
            logging.getLogger(noisy).setLevel(logging.DEBUG)
            logging.getLogger(noisy).propagate = True
    else:
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="apim-app-migrator",
        description="Export applications from an API Manager environment and import them into another",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--export-apps", action="store_true",
                   help="export all applications")
    p.add_argument("--import-apps", action="store_true",
                   help="import applications")
    p.add_argument("-c", "--config", type=Path, default=DEFAULT_CONFIG_FILE,
                   help="Path to the TOML configuration (default: %(default)s)")
    p.add_argument("--debug", action="store_true",
                   help="Enable verbose debug logging (incl. HTTP wire logs).")
    p.add_argument("--log-dir", type=Path, default=None,
                   help="Directory for the log files (default: [paths] log_dir of the configuration)")
    return p


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config: MigratorConfig = load_config(args.config)
    except ConfigError as e:
        configure_logging(args.debug, args.log_dir)
        logging.getLogger("cli").error("%s", e)
        sys.exit(EXIT_FATAL)

    configure_logging(args.debug, args.log_dir or config.paths.log_dir)
    log = logging.getLogger("cli")
    log.debug("Using configuration %s", args.config)

    try:
        summary = Coordinator(config).run(export_apps=args.export_apps,
                                          import_apps=args.import_apps)
    except (RegistrationError, TokenError) as e:
        log.error("Cannot obtain credentials, aborting: %s", e)
        sys.exit(EXIT_FATAL)
    except KeyboardInterrupt:
        log.warning("Interrupted by user.")
        sys.exit(EXIT_INTERRUPTED)
    except Exception:
        log.exception("Unhandled error during execution")
        sys.exit(EXIT_FATAL)

    if summary.has_failures:
        log.warning("Finished with %d failed item(s).", len(summary.failures))
        sys.exit(EXIT_PARTIAL)
    log.info("Done.")
    sys.exit(EXIT_OK)


if __name__ == "__main__":

    main()
