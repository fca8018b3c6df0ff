"""Entry point: wires the flow registry and maps failures to exit codes."""

from __future__ import annotations

import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from .cli import configure_logging, parse_args
from .errors import (
    AuthenticationError,
    ConfigurationError,
    DecodeError,
    ExternalCommandError,
    InvalidReferenceError,
    ToolArgumentError,
    TransportError,
    UnknownFlowError,
)
from .flows import FlowRegistry, build_registry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_USAGE = 2
EXIT_AUTH = 3
EXIT_API = 4
EXIT_COMMAND = 5


def orchestrate_flow(argv: Optional[Sequence[str]] = None, registry: Optional[FlowRegistry] = None) -> int:
    """Parse arguments, dispatch the requested flow and return a process exit code."""
    try:
        args = parse_args(argv)
        configure_logging(args.log_level)
        registry = registry or build_registry()

        if args.list:
            for name in registry.names():
                print(name)
            return EXIT_OK

        if not args.flow:
            print("ERROR: No flow name provided. Use --list to see available flows.", file=sys.stderr)
            return EXIT_USAGE

        registry.dispatch(args.flow, argv=args.flow_args)
        return EXIT_OK
    except AuthenticationError as exc:
        logger.error("Authentication error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTH
    except (ConfigurationError, UnknownFlowError, InvalidReferenceError, ToolArgumentError) as exc:
        logger.error("Configuration error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except (TransportError, DecodeError) as exc:
        logger.error("GitLab API error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_API
    except ExternalCommandError as exc:
        logger.error("External command error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_COMMAND
    except Exception:
        logger.exception("Unexpected error while running flow")
        return EXIT_UNEXPECTED


def main() -> int:
    load_dotenv(override=False)
    return orchestrate_flow()


if __name__ == "__main__":
    raise SystemExit(main())
