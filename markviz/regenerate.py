"""
Command-line entry point for regenerating the visualization.

Usage:
    markviz-regenerate            # cache-checked config regeneration
    markviz-regenerate --image    # unconditional image generation
"""
import argparse
import sys

from markviz import app as webapp
from markviz.services import handlers


def main(argv=None):
    parser = argparse.ArgumentParser(description='Regenerate the markviz visualization.')
    parser.add_argument(
        '--image',
        action='store_true',
        help='generate the PNG image instead of the chart config'
    )
    args = parser.parse_args(argv)

    try:
        print('Regenerating visualization...')
        if args.image:
            result = handlers.generate_image_artifact(
                documents_dir=webapp.DOCUMENTS_DIR,
                image_generator=webapp.image_generator,
                artifact_store=webapp.artifact_store
            )
        else:
            result = handlers.regenerate_config(
                documents_dir=webapp.DOCUMENTS_DIR,
                config_generator=webapp.config_generator,
                artifact_store=webapp.artifact_store,
                fingerprint_store=webapp.fingerprint_store
            )
        print(f"Success: {result['message']}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
