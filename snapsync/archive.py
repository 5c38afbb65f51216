"""
Archive module for project snapshot sync.

Unpacks the project archive captured from the host page into a snapshot.
"""

import io
import zipfile

from snapsync.errors import ArchiveError
from snapsync.models import ProjectSnapshot

# Tried in order of likelihood
ENCODINGS = ['utf-8', 'latin-1', 'cp1252']


def decode_file_content(data: bytes, name: str = '') -> str:
    """
    Decode archive member bytes into text.

    Args:
        data: Raw member content
        name: Member name, used in diagnostics only

    Returns:
        The decoded text
    """
    for encoding in ENCODINGS:
        try:
            content = data.decode(encoding)
            if encoding != 'utf-8':
                print(f"Successfully read {name} using {encoding} encoding")
            return content
        except UnicodeDecodeError:
            continue
    # latin-1 maps every byte, so this is not reached in practice
    raise ArchiveError(f"Unable to decode {name} with any of the attempted encodings")


def extract_archive(payload: bytes) -> ProjectSnapshot:
    """
    Extract every file of a zip archive.

    Args:
        payload: The archive bytes

    Returns:
        Dictionary mapping member paths to text content; directories are skipped

    Raises:
        ArchiveError: If the payload is not a readable zip archive
    """
    files = {}
    try:
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                files[info.filename] = decode_file_content(archive.read(info), info.filename)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as e:
        raise ArchiveError(f"Failed to process ZIP file: {e}") from e

    return files
