"""
File utilities module for project snapshot sync.

This module contains the pure helpers that prepare snapshot files for comparison
against the remote repository: ignore-rule filtering, content normalization,
content-address hashing and transport encoding.
"""

import base64
import binascii
import hashlib
import re
from typing import Dict, Iterable, List, Optional

import pathspec

from snapsync.errors import IgnoreRuleError, TransportDecodeError
from snapsync.models import PreparedFile, ProjectSnapshot

IGNORE_FILE_NAME = '.gitignore'

# Archives exported by the host wrap the working tree in this directory
PROJECT_ROOT_PREFIX = 'project/'

DEFAULT_IGNORE_PATTERNS = [
    'node_modules/',
    'dist/',
    'build/',
    '.DS_Store',
    'coverage/',
    '.env',
    '.env.local',
    '.env.*.local',
    '*.log',
    'npm-debug.log*',
    'yarn-debug.log*',
    'yarn-error.log*',
    '.idea/',
    '.vscode/',
    '*.suo',
    '*.ntvs*',
    '*.njsproj',
    '*.sln',
    '*.sw?',
    '.next/',
    'out/',
    '.nuxt/',
    '.cache/',
    '.temp/',
    'tmp/',
]

_TRAILING_BLANKS = re.compile(r'[ \t]+$', re.MULTILINE)
_TRAILING_NEWLINES = re.compile(r'\n+\Z')


def find_ignore_file(files: ProjectSnapshot) -> Optional[str]:
    """
    Find the ignore file content in a snapshot.

    Args:
        files: The project snapshot

    Returns:
        Content of the ignore file at the root or under the project prefix, or None
    """
    for candidate in (IGNORE_FILE_NAME, PROJECT_ROOT_PREFIX + IGNORE_FILE_NAME):
        content = files.get(candidate)
        if content:
            return content
    return None


def build_ignore_rules(ignore_content: Optional[str] = None) -> pathspec.PathSpec:
    """
    Compile ignore patterns into a matcher.

    Args:
        ignore_content: Content of the project's ignore file. When None, the
            built-in default patterns are used instead.

    Returns:
        PathSpec object with gitignore semantics
    """
    if ignore_content is None:
        patterns = list(DEFAULT_IGNORE_PATTERNS)
    else:
        patterns = []
        for line in ignore_content.splitlines():
            line = line.strip()
            # Skip empty lines and comments
            if line and not line.startswith('#'):
                patterns.append(line)

    try:
        return pathspec.PathSpec.from_lines('gitwildmatch', patterns)
    except Exception as e:
        raise IgnoreRuleError(f"Invalid ignore pattern: {e}") from e


def strip_project_prefix(path: str) -> str:
    if path.startswith(PROJECT_ROOT_PREFIX):
        return path[len(PROJECT_ROOT_PREFIX):]
    return path


def filter_by_ignore_rules(files: ProjectSnapshot) -> ProjectSnapshot:
    """
    Drop ignored, empty and directory entries from a snapshot.

    The project's own ignore file is used when present, otherwise the default
    patterns. Paths are returned without the project root prefix. Filtering is
    best effort: when the rules cannot be built or applied, a copy of the
    unfiltered snapshot is returned.

    Args:
        files: The project snapshot

    Returns:
        A new snapshot holding only the files worth syncing
    """
    filtered = {}
    try:
        rules = build_ignore_rules(find_ignore_file(files))

        for path, content in files.items():
            # Directory markers and empty files
            if path.endswith('/') or not content.strip():
                continue

            relative_path = strip_project_prefix(path)
            if rules.match_file(relative_path):
                continue

            filtered[relative_path] = content
    except Exception as e:
        print(f"Error processing files with ignore rules: {e}")
        return dict(files)

    return filtered


def normalize_for_comparison(content: str) -> str:
    """
    Normalize content so that cosmetic differences do not count as changes.

    Converts CRLF and CR line endings to LF, strips trailing spaces and tabs from
    every line and collapses trailing newlines at the end to a single one.

    Args:
        content: The content to normalize

    Returns:
        The normalized content
    """
    content = content.replace('\r\n', '\n').replace('\r', '\n')
    content = _TRAILING_BLANKS.sub('', content)
    return _TRAILING_NEWLINES.sub('\n', content)


def compute_content_hash(content: str) -> str:
    """
    Compute the git blob object name of a text.

    The digest covers "blob <byte length>\\0" followed by the UTF-8 content, in
    one contiguous buffer, which is exactly what git and the GitHub API use.

    Args:
        content: The content to hash

    Returns:
        Lowercase hexadecimal SHA-1 digest
    """
    data = content.encode('utf-8')
    buffer = b'blob %d\0' % len(data) + data
    return hashlib.sha1(buffer).hexdigest()


def decode_transport_payload(encoded: str) -> str:
    """
    Decode base64 transport content into text.

    Line breaks inside the encoded text are tolerated, as repository APIs wrap
    their base64 output.

    Args:
        encoded: Base64 encoded content

    Returns:
        The decoded text (UTF-8, or one character per byte if it is not UTF-8)

    Raises:
        TransportDecodeError: If the input is not valid base64
    """
    compact = ''.join(encoded.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TransportDecodeError(f"Invalid base64 payload: {e}") from e

    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        print(f"Failed to decode payload as UTF-8, falling back to latin-1: {e}")
        return data.decode('latin-1')


def encode_transport_payload(data: bytes) -> str:
    """Encode binary content as base64 text."""
    return base64.b64encode(data).decode('ascii')


def prepare_for_sync(files: ProjectSnapshot) -> Dict[str, PreparedFile]:
    """
    Filter a snapshot and hash every remaining file for comparison.

    Args:
        files: The project snapshot

    Returns:
        Dictionary mapping relative paths to PreparedFile records
    """
    prepared = {}
    for path, content in filter_by_ignore_rules(files).items():
        normalized = normalize_for_comparison(content)
        prepared[path] = PreparedFile(
            path=path,
            content=content,
            normalized=normalized,
            content_hash=compute_content_hash(normalized)
        )
    return prepared


def ignored_paths(paths: Iterable[str], files: ProjectSnapshot) -> List[str]:
    """
    List which of the given paths the snapshot's ignore rules exclude.

    Used to tell files that are missing locally because they are ignored apart
    from files that were really deleted.

    Args:
        paths: Paths to test, usually the remote repository's file list
        files: The snapshot whose ignore file decides

    Returns:
        The ignored paths, in input order
    """
    try:
        rules = build_ignore_rules(find_ignore_file(files))
    except IgnoreRuleError as e:
        print(f"Error determining ignored files: {e}")
        return []
    return [path for path in paths if rules.match_file(strip_project_prefix(path))]
