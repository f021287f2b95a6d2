"""
Source scanning and request resolution.

Dependencies are found with regular expressions, not a parser:

    import("./x")                       DYNAMIC_IMPORT
    import(/* chunkName: "n" */ "./x")  DYNAMIC_IMPORT into chunk "n"
    import "./x"  /  import a from "./x"  /  export {a} from "./x"
    require("./x")                      NORMAL
"""

from __future__ import annotations

import posixpath
import re

from lazybuild.adapters.bundler.filesystem import FileSystem
from lazybuild.core.models.graph import Dependency, DependencyKind

_DYNAMIC_IMPORT_RE = re.compile(
    r"""\bimport\(\s*"""
    r"""(?:/\*\s*(?:webpackChunkName|chunkName)\s*:\s*["']([^"']+)["']\s*\*/\s*)?"""
    r"""["']([^"']+)["']\s*\)"""
)
_STATIC_IMPORT_RE = re.compile(
    r"""^\s*(?:import|export)\s+(?:[^"'();]*?\s+from\s+)?["']([^"']+)["']""",
    re.MULTILINE,
)
_REQUIRE_RE = re.compile(r"""\brequire\(\s*["']([^"']+)["']\s*\)""")

RESOLVE_EXTENSIONS = ("", ".js")


class ResolveError(Exception):
    """A request could not be mapped to a file."""


def parse_dependencies(source: str) -> list[Dependency]:
    """Return the module's outgoing requests in source order."""
    found: list[tuple[int, Dependency]] = []
    for m in _DYNAMIC_IMPORT_RE.finditer(source):
        found.append((m.start(), Dependency(m.group(2), DependencyKind.DYNAMIC_IMPORT, m.group(1))))
    for m in _STATIC_IMPORT_RE.finditer(source):
        found.append((m.start(1), Dependency(m.group(1), DependencyKind.NORMAL)))
    for m in _REQUIRE_RE.finditer(source):
        found.append((m.start(), Dependency(m.group(1), DependencyKind.NORMAL)))
    found.sort(key=lambda item: item[0])
    return [dep for _, dep in found]


def resolve_request(fs: FileSystem, request: str, issuer_dir: str) -> str:
    """Resolve a relative or absolute request to an existing file path.

    Raises:
        ResolveError: bare package requests, or no candidate file exists.
    """
    if not request.startswith(("./", "../", "/")):
        raise ResolveError(f"Can't resolve '{request}' in '{issuer_dir}': only relative requests are supported")
    base = posixpath.normpath(posixpath.join(issuer_dir, request))
    for ext in RESOLVE_EXTENSIONS:
        candidate = base + ext
        if fs.exists(candidate):
            return candidate
    raise ResolveError(f"Can't resolve '{request}' in '{issuer_dir}'")
