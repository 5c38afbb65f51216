"""
Main module for the project snapshot sync command-line interface.

Offline helpers around a downloaded project archive: hash files the way the
remote repository names them, list what a sync would upload, and decode base64
content returned by repository APIs.
"""

import argparse
import sys

from snapsync.archive import extract_archive
from snapsync.config import load_settings
from snapsync.errors import SnapsyncError
from snapsync.fileutils import (
    compute_content_hash,
    decode_transport_payload,
    normalize_for_comparison,
    prepare_for_sync,
    strip_project_prefix,
)


def hash_files(paths, normalize=False):
    """
    Print the content hash of each file.

    Args:
        paths: Files to hash
        normalize: Hash the normalized content instead of the raw content
    """
    for path in paths:
        with open(path, 'r', encoding='utf-8', newline='') as f:
            content = f.read()
        if normalize:
            content = normalize_for_comparison(content)
        print(f"{compute_content_hash(content)}  {path}")


def list_archive(archive_path, apply_ignore_rules=True):
    """
    Print the hash and path of every file a sync of the archive would consider.

    Args:
        archive_path: Path to a downloaded project archive
        apply_ignore_rules: Whether to drop ignored files first
    """
    with open(archive_path, 'rb') as f:
        files = extract_archive(f.read())

    if apply_ignore_rules:
        prepared = prepare_for_sync(files)
        for path in sorted(prepared):
            print(f"{prepared[path].content_hash}  {path}")
        print(f"{len(prepared)} of {len(files)} files after ignore rules")
    else:
        for path in sorted(files):
            if path.endswith('/'):
                continue
            normalized = normalize_for_comparison(files[path])
            print(f"{compute_content_hash(normalized)}  {strip_project_prefix(path)}")


def main(argv=None):
    """
    Main entry point for the snapshot sync command-line interface.
    """
    settings = load_settings()

    parser = argparse.ArgumentParser(description="Prepare project snapshots for syncing to a git repository")
    parser.add_argument("--hash", nargs="+", metavar="FILE", help="Print the git blob hash of files")
    parser.add_argument("--normalize", action="store_true", help="Normalize line endings and whitespace before hashing")
    parser.add_argument("--archive", type=str, help="Path to a downloaded project archive to list")
    parser.add_argument("--no-filter", action="store_true", help="Do not apply ignore rules when listing an archive")
    parser.add_argument("--decode", action="store_true", help="Decode base64 content read from standard input")
    parser.add_argument("--show-config", action="store_true", help="Print the effective settings")

    args = parser.parse_args(argv)

    try:
        if args.show_config:
            for name, value in vars(settings).items():
                print(f"{name} = {value}")
        elif args.hash:
            hash_files(args.hash, normalize=args.normalize)
        elif args.archive:
            list_archive(args.archive, apply_ignore_rules=not args.no_filter)
        elif args.decode:
            sys.stdout.write(decode_transport_payload(sys.stdin.read()))
        else:
            parser.print_help()
            return 1
    except (SnapsyncError, OSError) as e:
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
