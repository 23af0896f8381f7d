"""File and directory exclusion rules for line counting.

Decides which files never contribute to a line count: lockfiles, build
output, minified vendor assets, generated code and dependency folders.
All matching is case-insensitive and has no I/O, so the same
(name, path) always gets the same answer.

Rules are checked in this order, first match wins:
    1. exact filename
    2. extension suffix
    3. filename substring
    4. path segment (directories, and migration folders for files)
"""

import logging

logger = logging.getLogger(__name__)

# Lockfiles and IDE-generated settings
IGNORED_FILE_NAMES = frozenset({
    "packages.config",
    "package-lock.json",
    "yarn.lock",
    "paket.lock",
    "paket.dependencies",
    "launchsettings.json",
})

IGNORED_SUFFIXES = (
    # Build output
    ".dll", ".exe", ".pdb", ".obj", ".cache", ".lib", ".exp", ".ilk", ".idb", ".nupkg",
    # Designer / generated code
    ".designer.cs", ".g.cs", ".g.i.cs", ".designer.vb", ".g.vb",
    # Minified third-party assets
    ".min.js", ".min.css",
    # IDE state
    ".user", ".suo", ".vspscc", ".vssscc",
    # Fonts
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
    # Compiled resources
    ".resources",
)

# Substrings of the file name
IGNORED_NAME_PATTERNS = (
    "reference.cs",
    "temporarygeneratedfile",
    "assemblyinfo",
    "jquery",
    "bootstrap",
)

# A directory is ignored if any of its path segments is one of these
IGNORED_DIRECTORY_SEGMENTS = frozenset({
    "bin",
    "obj",
    "debug",
    "release",
    "node_modules",
    "bower_components",
    "jspm_packages",
    "typings",
    ".vs",
    ".vscode",
    ".idea",
    ".git",
    "packages",
})

# Multi-segment directory paths (matched on segment boundaries)
IGNORED_DIRECTORY_PATHS = (
    "wwwroot/lib",
)

MIGRATION_SEGMENT = "migrations"


def _normalize(path: str) -> str:
    return path.replace("\\", "/").strip("/").lower()


def _segments(path: str) -> list:
    return [s for s in _normalize(path).split("/") if s and s != "."]


def should_ignore_directory(path: str) -> bool:
    """Check if a directory is excluded from line counting.

    Args:
        path: Directory path relative to the working copy root, using
            either separator

    Returns:
        True if any segment is a blocked directory name
    """
    segments = _segments(path)
    if any(segment in IGNORED_DIRECTORY_SEGMENTS for segment in segments):
        logger.debug(f"Ignoring directory: {path}")
        return True

    bounded = "/" + "/".join(segments) + "/"
    if any(f"/{blocked}/" in bounded for blocked in IGNORED_DIRECTORY_PATHS):
        logger.debug(f"Ignoring directory: {path}")
        return True

    return False


def should_ignore_file(name: str, path: str) -> bool:
    """Check if a file is excluded from line counting.

    Args:
        name: File name (no directory part)
        path: File path relative to the working copy root

    Returns:
        True if any exclusion rule matches
    """
    name_lower = name.lower()

    if name_lower in IGNORED_FILE_NAMES:
        logger.debug(f"Ignoring file (exact match): {name}")
        return True

    if name_lower.endswith(IGNORED_SUFFIXES):
        logger.debug(f"Ignoring file (extension): {name}")
        return True

    if any(pattern in name_lower for pattern in IGNORED_NAME_PATTERNS):
        logger.debug(f"Ignoring file (pattern): {name}")
        return True

    if MIGRATION_SEGMENT in _segments(path)[:-1]:
        logger.debug(f"Ignoring migration file: {path}")
        return True

    return False
