"""Upload-reference lines (``<  path/to/file``) and their resolution."""

from __future__ import annotations

import logging
import os
import re

logger = logging.getLogger(__name__)

UPLOAD_REFERENCE = re.compile(r"^\s*<\s+(\S+)\s*$")


def match_upload_reference(line: str) -> str | None:
    """Return the referenced path if ``line`` is an upload reference."""
    match = UPLOAD_REFERENCE.match(line)
    return match.group(1) if match else None


def resolve_file_path(
    ref_path: str,
    request_path: str,
    workspace_root: str | None = None,
) -> str | None:
    """Find the file an upload reference points at.

    Absolute references must exist as given. Relative references are
    tried against the workspace root (when known) and then against the
    directory of the request document.

    Args:
        ref_path: Path written in the upload reference.
        request_path: Absolute path of the request document.
        workspace_root: Optional workspace root directory.

    Returns:
        The existing file path, or None if nothing matches.
    """
    if os.path.isabs(ref_path):
        return ref_path if os.path.exists(ref_path) else None

    if workspace_root:
        candidate = os.path.join(workspace_root, ref_path)
        if os.path.exists(candidate):
            return candidate

    candidate = os.path.join(os.path.dirname(request_path), ref_path)
    if os.path.exists(candidate):
        return candidate

    logger.debug("Upload reference %r did not resolve", ref_path)
    return None
