from __future__ import annotations

import argparse
import asyncio
import sys
from textwrap import dedent

__all__ = ["cli"]

# ---------------------------------------------------------------------------+
#  CLI parser                                                                +
# ---------------------------------------------------------------------------+


def _version() -> str:
    import importlib.metadata as _ilmd

    try:
        return _ilmd.version("timeserver")
    except _ilmd.PackageNotFoundError:
        from timeserver import __version__

        return __version__


def _build_parser() -> argparse.ArgumentParser:  # noqa: D401 – imperative style
    """Return the parser for ``python -m timeserver.core``.

    ``--help`` and ``--version`` exit before the server modules are imported.
    """
    parser = argparse.ArgumentParser(
        prog="python -m timeserver.core",
        add_help=False,  # we add it manually to keep tight control
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=dedent(
            """\
            Line-oriented time server
            -------------------------
            Run *without arguments* to listen on the port from the
            environment (PORT) or the built-in default.
            """
        ),
    )

    parser.add_argument(
        "-h", "--help", action="help", help="show this message and exit"
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {_version()}"
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="TCP port to listen on (0 picks a free one); overrides PORT",
    )
    return parser


# ---------------------------------------------------------------------------+
#  Public entry-point                                                        +
# ---------------------------------------------------------------------------+


def cli(argv: list[str] | None = None) -> None:  # noqa: D401
    """Entry-point for ``python -m timeserver.core`` and the ``timeserver`` script."""

    args = _build_parser().parse_args(argv)  # exits on -h/-V automatically
    if args.port is not None and not 0 <= args.port <= 65535:
        _build_parser().error("--port must be between 0 and 65535")

    # delayed imports keep --help fast
    from timeserver.core.exceptions import BindError
    from timeserver.core.logger_setup import setup_logging
    from timeserver.core.main import main

    setup_logging()

    try:
        asyncio.run(main(args.port))
    except BindError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


# ---------------------------------------------------------------------------+
#  Module runner                                                             +
# ---------------------------------------------------------------------------+

if __name__ == "__main__":  # pragma: no cover
    try:
        cli(sys.argv[1:])
    except KeyboardInterrupt:  # Graceful ^C during manual runs
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
