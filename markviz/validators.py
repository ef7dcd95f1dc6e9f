"""
Validation utilities for request payloads and provider output.

This module provides pure validation functions used by the routes and the
generation service. The checks on provider output are deliberately
shallow: they confirm the overall shape, not the data.
"""

from typing import Any, Dict, Mapping, Optional

CHART_TYPES = frozenset({'line', 'bar', 'pie', 'area', 'scatter', 'composed'})


def validate_visualization_config(config: Any) -> Dict[str, Any]:
    """
    Check that parsed provider output looks like a visualization config.

    Args:
        config: Object decoded from the provider's JSON reply

    Returns:
        The same config dict, unchanged

    Raises:
        ValueError: If config is not an object, chartType is not one of
                   line|bar|pie|area|scatter|composed, or data is not a list

    Example:
        >>> validate_visualization_config({'chartType': 'bar', 'data': [], 'title': 'T'})['chartType']
        'bar'

        >>> validate_visualization_config({'chartType': 'radar', 'data': []})
        Traceback (most recent call last):
            ...
        ValueError: Unsupported chartType: 'radar'
    """
    if not isinstance(config, dict):
        raise ValueError(f"Visualization config must be a JSON object, got {type(config).__name__}")

    chart_type = config.get('chartType')
    if chart_type not in CHART_TYPES:
        raise ValueError(f"Unsupported chartType: {chart_type!r}")

    if not isinstance(config.get('data'), list):
        raise ValueError("Visualization config 'data' must be a list")

    return config


def validate_file_path(payload: Optional[Mapping[str, Any]]) -> str:
    """
    Extract the required filePath from a generate-from-path request body.

    Raises:
        ValueError: If the body is missing or filePath is absent or blank
    """
    if not isinstance(payload, Mapping) or not payload:
        raise ValueError('File path is required')

    file_path = payload.get('filePath')
    if not isinstance(file_path, str) or not file_path.strip():
        raise ValueError('File path is required')

    return file_path.strip()
