"""
Persistent state for markviz: the fingerprint marker and the artifacts.

Both stores come in a file-backed flavour used by the app and an in-memory
flavour used by tests. Writes go straight to the target path; there is no
temp-file rename and no locking, so a reader racing a writer can see a
truncated file.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from markviz.errors import NotFoundError

logger = logging.getLogger(__name__)

FINGERPRINT_FILENAME = 'last-processed.md'
CONFIG_FILENAME = 'visualization.json'
IMAGE_FILENAME = 'vis.png'


def make_fingerprint(document: Dict[str, Any]) -> str:
    """Build the 'filename:mtime' fingerprint for a source document."""
    return f"{document['filename']}:{document['mtime']}"


class FingerprintStore:
    """Stores the fingerprint of the last processed document in a text file."""

    def __init__(self, marker_path):
        self.marker_path = Path(marker_path)

    def load(self) -> Optional[str]:
        """
        Read the stored fingerprint.

        Returns:
            The stored fingerprint, or None if the marker is missing or
            cannot be read
        """
        try:
            return self.marker_path.read_text(encoding='utf-8').strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read fingerprint marker {self.marker_path}: {e}")
            return None

    def save(self, fingerprint: str) -> None:
        self.marker_path.parent.mkdir(parents=True, exist_ok=True)
        self.marker_path.write_text(fingerprint, encoding='utf-8')
        logger.info(f"Fingerprint saved: {fingerprint}")

    def is_up_to_date(self, current: str) -> bool:
        """Exact string comparison of the stored and current fingerprints."""
        return self.load() == current


class InMemoryFingerprintStore(FingerprintStore):
    """Fingerprint store kept in process memory."""

    def __init__(self, fingerprint: Optional[str] = None):
        self.fingerprint = fingerprint

    def load(self) -> Optional[str]:
        return self.fingerprint

    def save(self, fingerprint: str) -> None:
        self.fingerprint = fingerprint


class ArtifactStore:
    """
    Reads and writes the generated artifacts under a fixed directory.

    The config artifact is JSON text at <generated_dir>/visualization.json
    and the image artifact is PNG data at <generated_dir>/vis.png. Each
    save overwrites the previous version.
    """

    def __init__(self, generated_dir):
        self.generated_dir = Path(generated_dir)

    @property
    def config_path(self) -> Path:
        return self.generated_dir / CONFIG_FILENAME

    @property
    def image_path(self) -> Path:
        return self.generated_dir / IMAGE_FILENAME

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Artifact written: {path} ({len(data)} bytes)")

    def _read(self, path: Path) -> bytes:
        if not path.exists():
            raise NotFoundError('No visualization found')
        return path.read_bytes()

    def save_config(self, config: Dict[str, Any]) -> None:
        self._write(self.config_path, json.dumps(config, indent=2).encode('utf-8'))

    def load_config(self) -> Dict[str, Any]:
        """
        Load the stored visualization config.

        Raises:
            NotFoundError: If no config has been generated yet
            ValueError: If the stored file is not valid JSON
        """
        return json.loads(self._read(self.config_path).decode('utf-8'))

    def save_image(self, png_bytes: bytes) -> None:
        self._write(self.image_path, png_bytes)

    def load_image(self) -> bytes:
        return self._read(self.image_path)


class InMemoryArtifactStore(ArtifactStore):
    """Artifact store kept in process memory."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, image: Optional[bytes] = None):
        self.config = config
        self.image = image

    def save_config(self, config: Dict[str, Any]) -> None:
        self.config = config

    def load_config(self) -> Dict[str, Any]:
        if self.config is None:
            raise NotFoundError('No visualization found')
        return self.config

    def save_image(self, png_bytes: bytes) -> None:
        self.image = png_bytes

    def load_image(self) -> bytes:
        if self.image is None:
            raise NotFoundError('No visualization found')
        return self.image
