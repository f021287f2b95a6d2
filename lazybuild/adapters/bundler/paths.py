"""
Map request URLs onto the files a unit writes to its output filesystem.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Any
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)


def _url_path(value: str) -> str:
    path = urlsplit(value).path or "/"
    return path if path.endswith("/") else path + "/"


def resolve_artifact_path(public_path: str | None, compiler: Any, url: str) -> str | None:
    """Return the output file a request URL addresses, or None.

    ``public_path`` overrides the unit's own ``output.public_path``
    (single-unit configs only); pass None to use each unit's setting.
    Units are tried in order and the first whose public path prefixes
    the URL wins. Paths escaping the unit's output directory yield None.
    """
    try:
        request_path = unquote(urlsplit(url).path, errors="strict")
    except (ValueError, UnicodeDecodeError):
        logger.debug("Malformed request URL %r", url)
        return None
    if "\x00" in request_path:
        return None

    for unit in compiler.compilers:
        prefix = _url_path(public_path if public_path is not None else unit.options.output.public_path)
        if request_path + "/" == prefix:
            remainder = ""
        elif request_path.startswith(prefix):
            remainder = request_path[len(prefix):]
        else:
            continue

        output_path = unit.output_path if unit.output_path.endswith("/") else unit.output_path + "/"
        filename = posixpath.normpath(posixpath.join(output_path, remainder))
        if filename != output_path.rstrip("/") and not filename.startswith(output_path):
            logger.debug("Request %r escapes output path %s", url, output_path)
            return None
        return filename
    return None
