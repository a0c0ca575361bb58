"""reqtext main entry point.

Ties together the CLI, parser, and engine modules.
"""

import os
import sys

import requests

from reqtext.cli import build_settings, parse_cli
from reqtext.engine import format_request, print_response, send_request
from reqtext.logger import setup_logger
from reqtext.models import BodyTooLargeError
from reqtext.parser import (
    MalformedJSONBodyError,
    load_request_file,
    parse_http_request,
)


def notify_error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Run the reqtext tool.

    Args:
        argv: Optional argument list (defaults to sys.argv).

    Returns:
        Exit code (0 = success, 1 = no request in document, 2 = error).
    """
    args = parse_cli(argv)
    setup_logger(args.log_level)

    try:
        settings = build_settings(args)
    except (OSError, ValueError) as exc:
        print(f"Error loading settings: {exc}", file=sys.stderr)
        return 2

    request_path = os.path.abspath(args.request_file)
    try:
        raw_text = load_request_file(request_path)
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Error reading request file: {exc}", file=sys.stderr)
        return 2

    try:
        request = parse_http_request(
            raw_text, request_path, settings, notify=notify_error
        )
    except MalformedJSONBodyError:
        # already reported through notify_error
        return 2

    if request is None:
        print(f"No request found in '{args.request_file}'", file=sys.stderr)
        return 1

    print(format_request(request))
    if not args.send:
        return 0

    print(f"\n[*] Sending {request.method} {request.url}...")
    if args.proxy:
        print(f"    Proxy  : {args.proxy}")

    try:
        response = send_request(
            request,
            settings,
            proxy=args.proxy,
            timeout=args.timeout,
            verify=args.verify,
        )
    except (requests.RequestException, BodyTooLargeError, OSError) as exc:
        print(f"Error sending request: {exc}", file=sys.stderr)
        return 2

    print_response(response)
    return 0


if __name__ == "__main__":
    sys.exit(main())
