"""
Unit tests for visualization handlers module.

Tests cover:
- Cache-checked regeneration (up to date, stale, absent, missing artifact)
- Unconditional config and image generation
- Store updates only on success
- Generation from an explicit path
"""

import os
from unittest import mock

import pytest

from markviz.errors import GenerationError, NotFoundError, ProviderError
from markviz.services import handlers
from markviz.services.document_service import format_mtime
from markviz.services.stores import InMemoryArtifactStore, InMemoryFingerprintStore

T1 = 1714564800.0
T2 = T1 + 60

STORED_CONFIG = {'chartType': 'pie', 'data': [{'name': 'A', 'value': 1}], 'title': 'Stored'}
NEW_CONFIG = {'chartType': 'bar', 'data': [{'name': 'Q1', 'value': 10}], 'title': 'New'}


@pytest.fixture
def documents_dir(tmp_path):
    directory = tmp_path / 'documents'
    directory.mkdir()
    path = directory / 'report.md'
    path.write_text('# Sales\n\nQ1: 10', encoding='utf-8')
    os.utime(path, (T1, T1))
    return directory


def deps(fingerprint=None, config=None, generate_result=NEW_CONFIG):
    generator = mock.Mock()
    generator.generate = mock.Mock(return_value=generate_result)
    return {
        'config_generator': generator,
        'artifact_store': InMemoryArtifactStore(config=config),
        'fingerprint_store': InMemoryFingerprintStore(fingerprint),
    }


class TestRegenerateConfig:
    """Test the cache-checked regeneration path."""

    def test_up_to_date_skips_generation(self, documents_dir):
        d = deps(fingerprint=f'report.md:{format_mtime(T1)}', config=STORED_CONFIG)

        result = handlers.regenerate_config(documents_dir=documents_dir, **d)

        d['config_generator'].generate.assert_not_called()
        assert result['skipped'] is True
        assert result['config'] == STORED_CONFIG
        assert 'up to date' in result['message']
        assert d['artifact_store'].config == STORED_CONFIG

    def test_stale_fingerprint_generates_once(self, documents_dir):
        d = deps(fingerprint=f'report.md:{format_mtime(T1 - 60)}', config=STORED_CONFIG)

        result = handlers.regenerate_config(documents_dir=documents_dir, **d)

        d['config_generator'].generate.assert_called_once_with('# Sales\n\nQ1: 10')
        assert result['skipped'] is False
        assert result['config'] == NEW_CONFIG
        assert d['artifact_store'].config == NEW_CONFIG
        assert d['fingerprint_store'].fingerprint == f'report.md:{format_mtime(T1)}'

    def test_absent_fingerprint_generates(self, documents_dir):
        d = deps()

        result = handlers.regenerate_config(documents_dir=documents_dir, **d)

        assert d['config_generator'].generate.call_count == 1
        assert result['source_file'] == 'report.md'
        assert d['fingerprint_store'].fingerprint == f'report.md:{format_mtime(T1)}'

    def test_touched_file_triggers_regeneration(self, documents_dir):
        d = deps()

        handlers.regenerate_config(documents_dir=documents_dir, **d)
        handlers.regenerate_config(documents_dir=documents_dir, **d)
        assert d['config_generator'].generate.call_count == 1

        os.utime(documents_dir / 'report.md', (T2, T2))
        handlers.regenerate_config(documents_dir=documents_dir, **d)

        assert d['config_generator'].generate.call_count == 2
        assert d['fingerprint_store'].fingerprint == f'report.md:{format_mtime(T2)}'

    def test_current_fingerprint_without_artifact_regenerates(self, documents_dir):
        d = deps(fingerprint=f'report.md:{format_mtime(T1)}', config=None)

        result = handlers.regenerate_config(documents_dir=documents_dir, **d)

        d['config_generator'].generate.assert_called_once()
        assert result['skipped'] is False
        assert d['artifact_store'].config == NEW_CONFIG

    def test_generation_failure_leaves_stores_untouched(self, documents_dir):
        d = deps(fingerprint='report.md:old', config=STORED_CONFIG)
        d['config_generator'].generate.side_effect = ProviderError('OpenAI API error: HTTP 500')

        with pytest.raises(ProviderError):
            handlers.regenerate_config(documents_dir=documents_dir, **d)

        assert d['artifact_store'].config == STORED_CONFIG
        assert d['fingerprint_store'].fingerprint == 'report.md:old'

    def test_no_documents_raises_not_found(self, tmp_path):
        d = deps()
        with pytest.raises(NotFoundError):
            handlers.regenerate_config(documents_dir=tmp_path, **d)
        d['config_generator'].generate.assert_not_called()

    def test_empty_document_not_sent_to_provider(self, documents_dir):
        (documents_dir / 'report.md').write_text('', encoding='utf-8')
        d = deps()

        with pytest.raises(GenerationError, match='empty'):
            handlers.regenerate_config(documents_dir=documents_dir, **d)
        d['config_generator'].generate.assert_not_called()


class TestGenerateConfigArtifact:
    """Test unconditional config generation."""

    def test_ignores_current_fingerprint(self, documents_dir):
        d = deps(fingerprint=f'report.md:{format_mtime(T1)}', config=STORED_CONFIG)

        result = handlers.generate_config_artifact(documents_dir=documents_dir, **d)

        d['config_generator'].generate.assert_called_once()
        assert result['config'] == NEW_CONFIG
        assert result['message'] == 'Visualization generated from report.md'
        assert d['artifact_store'].config == NEW_CONFIG


class TestGenerateImageArtifact:
    """Test image generation."""

    def test_saves_png(self, documents_dir):
        generator = mock.Mock()
        generator.generate = mock.Mock(return_value=b'\x89PNG data')
        store = InMemoryArtifactStore()

        result = handlers.generate_image_artifact(
            documents_dir=documents_dir,
            image_generator=generator,
            artifact_store=store
        )

        generator.generate.assert_called_once_with('# Sales\n\nQ1: 10')
        assert store.image == b'\x89PNG data'
        assert result['image_available'] is True
        assert result['message'] == 'Visualization generated and saved'

    def test_generation_error_writes_nothing(self, documents_dir):
        generator = mock.Mock()
        generator.generate = mock.Mock(side_effect=GenerationError('No SVG markup found in model response'))
        store = InMemoryArtifactStore()

        with pytest.raises(GenerationError):
            handlers.generate_image_artifact(
                documents_dir=documents_dir,
                image_generator=generator,
                artifact_store=store
            )

        assert store.image is None


class TestGenerateConfigFromPath:
    """Test generation from an explicit file path."""

    def test_returns_config_without_storing(self, documents_dir):
        generator = mock.Mock()
        generator.generate = mock.Mock(return_value=NEW_CONFIG)

        config = handlers.generate_config_from_path(
            str(documents_dir / 'report.md'),
            config_generator=generator
        )

        assert config == NEW_CONFIG
        generator.generate.assert_called_once_with('# Sales\n\nQ1: 10')

    def test_missing_file(self, tmp_path):
        generator = mock.Mock()
        with pytest.raises(FileNotFoundError):
            handlers.generate_config_from_path(str(tmp_path / 'nope.md'), config_generator=generator)
        generator.generate.assert_not_called()

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.md'
        path.write_text('  ', encoding='utf-8')
        generator = mock.Mock()

        with pytest.raises(GenerationError):
            handlers.generate_config_from_path(str(path), config_generator=generator)
