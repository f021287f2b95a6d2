"""
Reference build pipeline — units, passes, watching, filesystems.

    from lazybuild.adapters.bundler import Compiler, MemoryFileSystem
"""

from lazybuild.adapters.bundler.compilation import Compilation, CompilationError, TickScheduler
from lazybuild.adapters.bundler.compiler import Compiler, MultiCompiler, MultiStats, Stats, create_compiler
from lazybuild.adapters.bundler.filesystem import FileSystem, LocalFileSystem, MemoryFileSystem
from lazybuild.adapters.bundler.paths import resolve_artifact_path
from lazybuild.adapters.bundler.watching import MultiWatching, Watcher, Watching

__all__ = [
    "Compilation",
    "CompilationError",
    "Compiler",
    "FileSystem",
    "LocalFileSystem",
    "MemoryFileSystem",
    "MultiCompiler",
    "MultiStats",
    "MultiWatching",
    "Stats",
    "TickScheduler",
    "Watcher",
    "Watching",
    "create_compiler",
    "resolve_artifact_path",
]
