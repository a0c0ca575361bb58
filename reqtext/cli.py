"""Command-line interface.

Parses a request-text document and either prints the structured request
or sends it.
"""

import argparse
import os
import sys

from reqtext import __version__
from reqtext.settings import FormParamEncodingStrategy, RestClientSettings

LOG_LEVELS = ("debug", "info", "warning", "error")


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser for the reqtext CLI."""
    parser = argparse.ArgumentParser(
        prog="reqtext",
        description=(
            "reqtext v{ver}: parse an HTTP request text document.\n\n"
            "Reads a document made of a request line, optional headers and "
            "an optional body, prints the request it describes and can send "
            "it."
        ).format(ver=__version__),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  reqtext --request-file login.http\n"
            "  reqtext --request-file upload.http --workspace-root . --send\n"
            "  reqtext --request-file form.http --form-encoding always "
            "--send --proxy http://127.0.0.1:8080 --insecure\n"
        ),
    )

    required = parser.add_argument_group("required arguments")
    required.add_argument(
        "--request-file",
        required=True,
        help="Path to the request text document.",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="YAML settings file (default headers, encoding, workspace root).",
    )
    parser.add_argument(
        "--workspace-root",
        default=None,
        help="Directory used first to resolve relative '<  file' uploads.",
    )
    parser.add_argument(
        "--form-encoding",
        choices=[strategy.value for strategy in FormParamEncodingStrategy],
        default=None,
        help="How form-urlencoded bodies are percent-encoded.",
    )
    parser.add_argument(
        "--send",
        action="store_true",
        help="Send the request and print the response.",
    )
    parser.add_argument(
        "--proxy",
        default=None,
        help="Route traffic through a proxy (e.g. http://127.0.0.1:8080).",
    )
    parser.add_argument(
        "--insecure",
        action="store_false",
        dest="verify",
        help="Do not verify TLS certificates.",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=30,
        help="Request timeout in seconds (default: 30).",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="warning",
        help="Logging verbosity (default: warning).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def validate_args(args: argparse.Namespace) -> None:
    """Validate parsed CLI arguments.

    Raises:
        SystemExit: If an input file is missing or a value is out of range.
    """
    if not os.path.isfile(args.request_file):
        _fail(f"Request file not found: '{args.request_file}'")

    if not os.access(args.request_file, os.R_OK):
        _fail(f"Request file is not readable: '{args.request_file}'")

    if args.config is not None and not os.path.isfile(args.config):
        _fail(f"Config file not found: '{args.config}'")

    if args.workspace_root is not None and not os.path.isdir(args.workspace_root):
        _fail(f"Workspace root is not a directory: '{args.workspace_root}'")

    if args.timeout <= 0:
        _fail("Timeout must be a positive number of seconds.")


def build_settings(args: argparse.Namespace) -> RestClientSettings:
    """Load settings from ``--config`` and apply CLI overrides.

    Raises:
        ValueError: If the config file is invalid.
        OSError: If the config file cannot be read.
    """
    if args.config:
        settings = RestClientSettings.from_yaml(args.config)
    else:
        settings = RestClientSettings()

    if args.workspace_root:
        settings.workspace_root = os.path.abspath(args.workspace_root)
    if args.form_encoding:
        settings.form_param_encoding_strategy = FormParamEncodingStrategy(
            args.form_encoding
        )
    return settings


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate command-line arguments.

    Args:
        argv: Optional list of arguments (defaults to sys.argv).

    Returns:
        Parsed and validated argument namespace.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(args)
    return args
