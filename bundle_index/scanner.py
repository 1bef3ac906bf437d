"""
Scanner - Directory traversal and eligibility filtering.

Walks a directory tree with os.scandir and lazily yields FileInfo for
every file that should be indexed. The traversal has no side effects
beyond logging; cache decisions happen in the consumer.
"""

import logging
import os
import stat as stat_module
from pathlib import Path
from typing import Iterator, List

from .config import get_config, IndexerConfig
from .models import FileInfo
from .errors import handle_error


logger = logging.getLogger(__name__)


def is_eligible(path: Path, st: os.stat_result, config: IndexerConfig | None = None) -> bool:
    """
    Decide whether a file should be indexed.

    Rules, in order:
        1. Regular files only (directories, sockets, fifos are rejected)
        2. Size must not exceed config.max_file_size (logged as a warning)
        3. Size must be greater than zero
        4. Extension (case-insensitive) must be in config.allowed_extensions
    """
    config = config or get_config()

    if not stat_module.S_ISREG(st.st_mode):
        return False

    if st.st_size > config.max_file_size:
        logger.warning(
            f"Skipping large text file ({st.st_size // (1024 * 1024)}MB): {path}"
        )
        return False

    if st.st_size == 0:
        return False

    return Path(path).suffix.lower() in config.allowed_extensions


class Scanner:
    """
    Recursive file system scanner.

    Yields FileInfo objects for eligible files only. Symlinks are not
    followed; entries are visited in name order so runs are deterministic.
    """

    def __init__(self, config: IndexerConfig | None = None):
        self.config = config or get_config()

    def iter_files(self, root: Path) -> Iterator[FileInfo]:
        """
        Iterate over eligible files below root.

        This is a streaming interface: files are yielded as they are
        found, so the caller can process each one before the walk ends.
        """
        root = Path(root).absolute()
        pending: List[Path] = [root]

        while pending:
            directory = pending.pop()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                handle_error(e, directory, "scan_directory")
                continue

            subdirs: List[Path] = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        subdirs.append(Path(entry.path))
                        continue

                    st = entry.stat(follow_symlinks=False)
                    path = Path(entry.path)
                    if is_eligible(path, st, self.config):
                        yield FileInfo.from_stat(path, st)

                except OSError as e:
                    handle_error(e, Path(entry.path), "scan_entry")
                    continue

            # Depth-first, preserving name order within each directory
            pending.extend(reversed(subdirs))

    def scan(self, root: Path) -> List[FileInfo]:
        """Collect all eligible files below root."""
        files = list(self.iter_files(root))
        logger.info(f"Found {len(files)} indexable files under {root}")
        return files
