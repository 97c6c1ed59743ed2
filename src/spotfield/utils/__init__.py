"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Scene config validation (validators)
    - Atomic I/O and YAML (fs)
    - Unified logging (logging_config)

No module in utils/ may import from spotfield.renderer.

Convenience imports:
    from spotfield.utils import fs, validators
    from spotfield.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import logging_config
from . import validators

from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'logging_config',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
