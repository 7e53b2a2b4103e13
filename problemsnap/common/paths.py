"""Output path conventions.

Display names may contain characters that are illegal in file-system paths,
so every name is passed through sanitize_name() before it becomes a path
segment.
"""

import re
from pathlib import Path

SNAPSHOT_FILENAME = "index.mhtml"

_ILLEGAL_CHARS = re.compile(r'[/\\?%*:|"<>]')
_DOTS_ONLY = re.compile(r"\.*")


def sanitize_name(name: str) -> str:
    """Replace each of ``/ \\ ? % * : | " < >`` with ``_``.

    Args:
        name: A problem or company display name.

    Returns:
        The name with every illegal character replaced. A name that is
        empty or made only of dots becomes ``_`` so it cannot refer to
        the output directory or its parent.

    Example::

        >>> sanitize_name("A/B:Test")
        'A_B_Test'
    """
    sanitized = _ILLEGAL_CHARS.sub("_", name)
    if _DOTS_ONLY.fullmatch(sanitized):
        return "_"
    return sanitized


def snapshot_path(output_dir: Path, name: str) -> Path:
    """Return ``<output_dir>/<sanitized name>/index.mhtml``."""
    return output_dir / sanitize_name(name) / SNAPSHOT_FILENAME


def company_path(output_dir: Path, company: str) -> Path:
    """Return ``<output_dir>/<sanitized company>.json``."""
    return output_dir / f"{sanitize_name(company)}.json"
