"""
Loader discovery — ``"package.module:function"`` strings to callables.

A loader takes ``(source, resource)`` and returns the transformed source.
"""

from __future__ import annotations

import importlib
import logging
from typing import Callable

from lazybuild.core.config.loader import ConfigError

logger = logging.getLogger(__name__)


def load_loader(spec: str) -> Callable[[str, str], str]:
    """Import one loader.

    Raises:
        ConfigError: malformed string, missing module or attribute, not callable.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid loader '{spec}': expected 'package.module:function'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import loader module '{module_name}': {e}") from e

    fn = getattr(module, attr, None)
    if fn is None:
        raise ConfigError(f"Loader module '{module_name}' has no attribute '{attr}'")
    if not callable(fn):
        raise ConfigError(f"Loader '{spec}' is not callable")

    logger.debug("Loaded loader %s", spec)
    return fn


def load_loaders(specs: list[str]) -> list[Callable[[str, str], str]]:
    return [load_loader(spec) for spec in specs]
