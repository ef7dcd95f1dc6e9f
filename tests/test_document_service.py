"""
Unit tests for the source document service.

Tests cover:
- Latest-file selection by modification time
- Extension filtering and missing/empty directories
- Timestamp formatting and tie breaking
- Reading and the empty-document guard
"""

import os

import pytest

from markviz.errors import GenerationError, NotFoundError
from markviz.services.document_service import (
    format_mtime,
    get_latest_markdown_file,
    load_latest_document,
    read_document,
)

T1 = 1714564800.0  # 2024-05-01T12:00:00Z


def write_doc(directory, name, text, mtime):
    path = directory / name
    path.write_text(text, encoding='utf-8')
    os.utime(path, (mtime, mtime))
    return path


class TestFormatMtime:
    """Test ISO timestamp formatting."""

    def test_format_mtime_utc_with_milliseconds(self):
        assert format_mtime(T1) == '2024-05-01T12:00:00.000Z'

    def test_format_mtime_keeps_fractional_milliseconds(self):
        assert format_mtime(T1 + 0.25) == '2024-05-01T12:00:00.250Z'


class TestGetLatestMarkdownFile:
    """Test the file locator."""

    def test_returns_most_recently_modified(self, tmp_path):
        write_doc(tmp_path, 'old.md', '# old', T1)
        write_doc(tmp_path, 'newest.md', '# newest', T1 + 300)
        write_doc(tmp_path, 'middle.md', '# middle', T1 + 100)

        latest = get_latest_markdown_file(tmp_path)

        assert latest['filename'] == 'newest.md'
        assert latest['path'] == str((tmp_path / 'newest.md').resolve())
        assert latest['mtime'] == format_mtime(T1 + 300)
        assert latest['size'] == len('# newest')

    def test_ignores_other_extensions(self, tmp_path):
        write_doc(tmp_path, 'report.md', '# report', T1)
        write_doc(tmp_path, 'notes.txt', 'newer but not markdown', T1 + 1000)

        assert get_latest_markdown_file(tmp_path)['filename'] == 'report.md'

    def test_ignores_directories(self, tmp_path):
        write_doc(tmp_path, 'report.md', '# report', T1)
        (tmp_path / 'folder.md').mkdir()

        assert get_latest_markdown_file(tmp_path)['filename'] == 'report.md'

    def test_empty_directory_raises_not_found(self, tmp_path):
        with pytest.raises(NotFoundError, match='No markdown files found'):
            get_latest_markdown_file(tmp_path)

    def test_missing_directory_raises_not_found(self, tmp_path):
        with pytest.raises(NotFoundError):
            get_latest_markdown_file(tmp_path / 'does-not-exist')

    def test_equal_mtimes_pick_first_name(self, tmp_path):
        write_doc(tmp_path, 'b.md', '# b', T1)
        write_doc(tmp_path, 'a.md', '# a', T1)

        assert get_latest_markdown_file(tmp_path)['filename'] == 'a.md'

    def test_custom_extension(self, tmp_path):
        write_doc(tmp_path, 'report.md', '# report', T1 + 10)
        write_doc(tmp_path, 'notes.markdown', '# notes', T1)

        latest = get_latest_markdown_file(tmp_path, extension='.markdown')
        assert latest['filename'] == 'notes.markdown'


class TestLoadLatestDocument:
    """Test reading the located document."""

    def test_includes_text(self, tmp_path):
        write_doc(tmp_path, 'report.md', '# Sales\n\nQ1: 10', T1)

        document = load_latest_document(tmp_path)

        assert document['filename'] == 'report.md'
        assert document['text'] == '# Sales\n\nQ1: 10'

    def test_blank_document_raises(self, tmp_path):
        write_doc(tmp_path, 'report.md', '   \n\n', T1)

        with pytest.raises(GenerationError, match='report.md is empty'):
            load_latest_document(tmp_path)

    def test_read_document_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_document(tmp_path / 'missing.md')
