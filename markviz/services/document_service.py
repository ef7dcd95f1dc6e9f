"""
Source document service.

Locates the most recently modified markdown file in the watched directory
and reads its text. Nothing is cached: every call goes back to the
filesystem.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from markviz.errors import GenerationError, NotFoundError

logger = logging.getLogger(__name__)


def format_mtime(timestamp: float) -> str:
    """
    Format a POSIX timestamp as an ISO-8601 UTC string.

    Uses millisecond precision and a trailing 'Z', e.g.
    '2024-05-01T12:00:00.000Z'.
    """
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def get_latest_markdown_file(documents_dir, extension: str = '.md') -> Dict[str, Any]:
    """
    Find the most recently modified file with the given extension.

    Candidates are enumerated in filename order and sorted stably by
    modification time, so among files with equal mtimes the first name
    wins.

    Args:
        documents_dir: Directory to scan
        extension: File extension to match (default: '.md')

    Returns:
        Dictionary with keys:
            - 'filename': Base name of the file
            - 'path': Absolute path to the file
            - 'mtime': Modification time as ISO-8601 UTC string
            - 'size': File size in bytes

    Raises:
        NotFoundError: If the directory is missing or holds no matching file
    """
    directory = Path(documents_dir)
    if not directory.is_dir():
        raise NotFoundError(f"Documents directory not found: {directory}")

    candidates = sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.name.endswith(extension)
    )
    if not candidates:
        raise NotFoundError('No markdown files found')

    file_stats = []
    for candidate in candidates:
        stats = candidate.stat()
        file_stats.append((candidate, stats.st_mtime, stats.st_size))

    file_stats.sort(key=lambda entry: entry[1], reverse=True)
    latest, mtime, size = file_stats[0]

    logger.debug(f"Latest markdown file in {directory}: {latest.name} ({len(candidates)} candidates)")
    return {
        'filename': latest.name,
        'path': str(latest.resolve()),
        'mtime': format_mtime(mtime),
        'size': size,
    }


def read_document(path) -> str:
    """Read a source document as UTF-8 text."""
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def load_latest_document(documents_dir, extension: str = '.md') -> Dict[str, Any]:
    """
    Locate the latest source document and read its content.

    Returns the metadata dict from get_latest_markdown_file() with an extra
    'text' key.

    Raises:
        NotFoundError: If no matching file exists
        GenerationError: If the file is empty or whitespace only
    """
    document = get_latest_markdown_file(documents_dir, extension)
    text = read_document(document['path'])
    if not text or not text.strip():
        raise GenerationError(f"Markdown file {document['filename']} is empty")

    document['text'] = text
    return document
