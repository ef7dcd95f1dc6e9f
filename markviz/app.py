import io
import logging
import os
import sys
from pathlib import Path

import bleach
import markdown
from dotenv import load_dotenv
from flask import Flask, render_template, request, jsonify, send_file
from markupsafe import Markup

from markviz.errors import NotFoundError
from markviz.validators import validate_file_path
from markviz.services import handlers
from markviz.services.document_service import get_latest_markdown_file, load_latest_document
from markviz.services.generation_service import build_config_generator, build_image_generator
from markviz.services.stores import ArtifactStore, FingerprintStore, FINGERPRINT_FILENAME

# Load environment variables from .env file
load_dotenv()

# Working directory layout: documents/ is the input, generated/ holds artifacts
WORK_DIR = Path(os.getenv('MARKVIZ_WORK_DIR') or os.getcwd()).resolve()
DOCUMENTS_DIR = WORK_DIR / 'documents'
GENERATED_DIR = WORK_DIR / 'generated'

# Configuration constants
MAX_IMAGE_SIZE = int(os.getenv('MAX_IMAGE_SIZE', 10 * 1024 * 1024))  # 10MB default
RASTER_WIDTH = int(os.getenv('RASTER_WIDTH', 800))
RASTER_HEIGHT = int(os.getenv('RASTER_HEIGHT', 600))

app = Flask(__name__)

# Get debug mode from environment (default to False for safety)
FLASK_DEBUG = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
app.debug = FLASK_DEBUG

# Ensure INFO-level logs are emitted so app.logger.info calls appear in the console
app.logger.setLevel(logging.INFO)
# Attach a StreamHandler to stdout so logs appear in the terminal reliably
if not app.logger.handlers:
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s %(levelname)s: %(message)s')
    handler.setFormatter(formatter)
    app.logger.addHandler(handler)

if not any(os.getenv(key) for key in ('OPENAI_API_KEY', 'ANTHROPIC_API_KEY', 'GEMINI_API_KEY')):
    app.logger.warning(
        "No provider API key set; generation requests will fail. "
        "Set OPENAI_API_KEY, ANTHROPIC_API_KEY or GEMINI_API_KEY."
    )

# Process-wide state, replaced with in-memory versions in tests
artifact_store = ArtifactStore(GENERATED_DIR)
fingerprint_store = FingerprintStore(GENERATED_DIR / FINGERPRINT_FILENAME)
config_generator = build_config_generator()
image_generator = build_image_generator(RASTER_WIDTH, RASTER_HEIGHT, MAX_IMAGE_SIZE)

PREVIEW_TAGS = list(bleach.sanitizer.ALLOWED_TAGS) + [
    'p', 'h1', 'h2', 'h3', 'h4', 'pre', 'code', 'blockquote', 'hr',
    'table', 'thead', 'tbody', 'tr', 'th', 'td',
]


def render_markdown(text):
    """Render markdown to sanitized HTML safe to embed in a template."""
    html = markdown.markdown(text, extensions=['tables'])
    cleaned = bleach.clean(html, tags=PREVIEW_TAGS, attributes=bleach.sanitizer.ALLOWED_ATTRIBUTES, strip=True)
    return Markup(cleaned)


@app.route('/', methods=['GET'])
def index():
    """Render the viewer page with the source preview and current config."""
    document = None
    preview = None
    try:
        document = load_latest_document(DOCUMENTS_DIR)
        preview = render_markdown(document['text'])
    except Exception as e:
        app.logger.info(f"No source document to preview: {e}")

    config = None
    try:
        config = artifact_store.load_config()
    except NotFoundError:
        pass
    except Exception:
        app.logger.exception("Failed to load stored visualization config for index page")

    return render_template('index.html', document=document, preview=preview, config=config)


@app.route('/api/visualization', methods=['POST'])
def generate_image():
    """Generate the image artifact from the latest document."""
    try:
        result = handlers.generate_image_artifact(
            documents_dir=DOCUMENTS_DIR,
            image_generator=image_generator,
            artifact_store=artifact_store
        )
        app.logger.info(f"Image visualization generated from {result['source_file']}")
        return jsonify({'success': True, 'message': result['message']})
    except Exception as e:
        app.logger.exception("Error generating visualization")
        return jsonify({'error': str(e) or 'Failed to generate visualization'}), 500


@app.route('/api/visualization/config', methods=['POST'])
def generate_config():
    """Generate the config artifact from the latest document, ignoring the fingerprint."""
    try:
        result = handlers.generate_config_artifact(
            documents_dir=DOCUMENTS_DIR,
            config_generator=config_generator,
            artifact_store=artifact_store,
            fingerprint_store=fingerprint_store
        )
        return jsonify({'success': True, 'message': result['message']})
    except Exception as e:
        app.logger.exception("Error generating visualization config")
        return jsonify({'error': str(e) or 'Failed to generate visualization'}), 500


@app.route('/api/regenerate', methods=['POST'])
def regenerate():
    """Regenerate the config artifact unless the fingerprint is current."""
    try:
        result = handlers.regenerate_config(
            documents_dir=DOCUMENTS_DIR,
            config_generator=config_generator,
            artifact_store=artifact_store,
            fingerprint_store=fingerprint_store
        )
        return jsonify({
            'success': True,
            'message': result['message'],
            'config': result['config']
        })
    except Exception as e:
        app.logger.exception("Error regenerating visualization")
        return jsonify({'error': str(e) or 'Failed to regenerate visualization'}), 500


@app.route('/api/visualization/config', methods=['GET'])
def get_config():
    """Return the stored config artifact."""
    try:
        config = artifact_store.load_config()
    except NotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        app.logger.exception("Error loading visualization config")
        return jsonify({'error': str(e) or 'Failed to load visualization'}), 500

    return jsonify({'success': True, 'config': config})


@app.route('/api/visualization/image', methods=['GET'])
def get_image():
    """Return the stored PNG. The ?t= cache buster is accepted and ignored."""
    try:
        image_bytes = artifact_store.load_image()
    except NotFoundError:
        return 'No visualization found', 404
    except Exception as e:
        app.logger.exception("Error loading visualization image")
        return str(e) or 'Failed to load visualization image', 500

    response = send_file(io.BytesIO(image_bytes), mimetype='image/png', as_attachment=False)
    response.headers['Cache-Control'] = 'no-store, max-age=0'
    return response


@app.route('/api/latest-md', methods=['GET'])
def latest_md():
    """Return metadata for the most recently modified markdown file."""
    try:
        return jsonify(get_latest_markdown_file(DOCUMENTS_DIR))
    except Exception as e:
        app.logger.exception("Error finding latest markdown file")
        return jsonify({'error': str(e) or 'Failed to find latest markdown file'}), 500


@app.route('/api/generate-visualization', methods=['POST'])
def generate_from_path():
    """Generate a config from an explicit file path without storing it."""
    try:
        file_path = validate_file_path(request.get_json(silent=True))
    except ValueError as e:
        app.logger.info(f"Generate request rejected: {e}")
        return jsonify({'error': str(e)}), 400

    try:
        config = handlers.generate_config_from_path(file_path, config_generator=config_generator)
        return jsonify({'success': True, 'config': config, 'sourceFile': file_path})
    except Exception as e:
        app.logger.exception("Error generating visualization from path")
        return jsonify({'error': str(e) or 'Failed to generate visualization'}), 500


if __name__ == '__main__':
    # Disable the reloader so a single process is used (breakpoints attach reliably)
    app.run(debug=FLASK_DEBUG, use_reloader=False)
