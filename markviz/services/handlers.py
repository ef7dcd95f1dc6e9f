"""
Visualization handlers module.

This module contains the orchestration behind the HTTP operations and the
regenerate CLI: locate the latest document, decide whether work is needed,
call a generator and persist the artifact. Stores and generators are
passed in so tests can substitute in-memory or mocked versions.

Handlers raise; the callers decide how errors are reported.
"""

import logging
from typing import Any, Dict

from markviz.errors import GenerationError, NotFoundError
from markviz.services.document_service import load_latest_document, read_document
from markviz.services.stores import make_fingerprint

logger = logging.getLogger(__name__)


def generate_image_artifact(
    *,
    documents_dir,
    image_generator,
    artifact_store
) -> Dict[str, Any]:
    """
    Render the latest document as an image and store it.

    Always calls the generator; the fingerprint is not consulted.

    Args:
        documents_dir: Directory watched for markdown files
        image_generator: FallbackGenerator returning PNG bytes
        artifact_store: ArtifactStore instance

    Returns:
        Dictionary with keys 'image_available', 'message' and 'source_file'

    Raises:
        NotFoundError: If no markdown file exists
        GenerationError: If the document is empty or the SVG is unusable
        ProviderError / ConfigurationError: From the generator
    """
    document = load_latest_document(documents_dir)
    logger.info(f"Generating image visualization from {document['filename']}")

    png_bytes = image_generator.generate(document['text'])
    artifact_store.save_image(png_bytes)

    return {
        'image_available': True,
        'message': 'Visualization generated and saved',
        'source_file': document['filename'],
    }


def generate_config_artifact(
    *,
    documents_dir,
    config_generator,
    artifact_store,
    fingerprint_store
) -> Dict[str, Any]:
    """
    Generate a chart config from the latest document unconditionally.

    On success the config artifact is overwritten first, then the
    fingerprint, so the fingerprint never points at a config that was not
    written.

    Returns:
        Dictionary with keys 'message', 'config' and 'source_file'
    """
    document = load_latest_document(documents_dir)
    return _generate_config(document, config_generator, artifact_store, fingerprint_store)


def _generate_config(document, config_generator, artifact_store, fingerprint_store) -> Dict[str, Any]:
    logger.info(f"Generating visualization config from {document['filename']}")
    config = config_generator.generate(document['text'])

    artifact_store.save_config(config)
    fingerprint_store.save(make_fingerprint(document))

    return {
        'message': f"Visualization generated from {document['filename']}",
        'config': config,
        'source_file': document['filename'],
    }


def regenerate_config(
    *,
    documents_dir,
    config_generator,
    artifact_store,
    fingerprint_store
) -> Dict[str, Any]:
    """
    Regenerate the chart config only when the latest document changed.

    The stored fingerprint is compared with 'filename:mtime' of the latest
    document. When they match and a config artifact exists, the stored
    config is returned and the generator is not called. This is a
    timestamp comparison, not a content hash: touching a file forces a
    regeneration, and an edit that keeps the same name and millisecond
    mtime is skipped.

    Returns:
        Dictionary with keys 'message', 'config', 'source_file' and
        'skipped' (True when the stored config was reused)
    """
    document = load_latest_document(documents_dir)
    current = make_fingerprint(document)

    if fingerprint_store.is_up_to_date(current):
        try:
            config = artifact_store.load_config()
        except NotFoundError:
            logger.warning(f"Fingerprint {current} is current but no config is stored; regenerating")
        else:
            logger.info(f"Visualization for {document['filename']} is up to date; skipping generation")
            return {
                'message': f"Visualization is up to date with {document['filename']}",
                'config': config,
                'source_file': document['filename'],
                'skipped': True,
            }

    result = _generate_config(document, config_generator, artifact_store, fingerprint_store)
    result['skipped'] = False
    return result


def generate_config_from_path(file_path: str, *, config_generator) -> Dict[str, Any]:
    """
    Generate a chart config from an explicit file without storing it.

    Raises:
        FileNotFoundError: If the file does not exist
        GenerationError: If the file is empty
    """
    content = read_document(file_path)
    if not content.strip():
        raise GenerationError(f"Markdown file {file_path} is empty")

    logger.info(f"Generating visualization config from explicit path {file_path}")
    return config_generator.generate(content)
