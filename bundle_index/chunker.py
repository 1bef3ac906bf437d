"""
Chunker - Split file text into overlapping segments.

Uses a sliding window so adjacent segments share a fixed overlap and
context is not lost at chunk boundaries. Files above the large-file
threshold get a longer window; the overlap is the same for both tiers.
"""

import logging
from typing import List, Tuple

from .config import get_config, IndexerConfig
from .models import FileInfo, Segment


logger = logging.getLogger(__name__)


class Chunker:
    """Sliding-window text splitter with two size tiers."""

    def __init__(self, config: IndexerConfig | None = None):
        self.config = config or get_config()
        smallest = min(self.config.chunk_size, self.config.large_chunk_size)
        if self.config.chunk_overlap < 0 or self.config.chunk_overlap >= smallest:
            raise ValueError(
                f"chunk_overlap ({self.config.chunk_overlap}) must be in "
                f"[0, {smallest})"
            )

    def chunk_size_for(self, file_size: int) -> int:
        """Window length for a file of the given size in bytes."""
        if file_size > self.config.large_file_threshold:
            return self.config.large_chunk_size
        return self.config.chunk_size

    def spans(self, text: str, file_size: int) -> List[Tuple[int, int]]:
        """
        Compute (start, end) character spans covering the whole text.

        A window that would cut a line ends after the last newline found in
        its trailing overlap region instead, so log lines stay whole where
        possible. The next window starts overlap characters before that end.
        The last window runs to the end of the text and may be shorter than
        chunk_size.
        """
        length = len(text)
        if length == 0:
            return []

        chunk_size = self.chunk_size_for(file_size)
        if length <= chunk_size:
            return [(0, length)]

        overlap = self.config.chunk_overlap
        # Snapped ends stay past start + overlap so every window advances
        snap_from = max(chunk_size - overlap, overlap)
        spans = []
        start = 0
        while True:
            end = start + chunk_size
            if end >= length:
                spans.append((start, length))
                break
            newline = text.rfind("\n", start + snap_from, end)
            if newline != -1:
                end = newline + 1
            spans.append((start, end))
            start = end - overlap

        return spans

    def split(self, text: str, file_size: int) -> List[str]:
        """Split text into overlapping chunks."""
        return [text[start:end] for start, end in self.spans(text, file_size)]

    def chunk_file(self, info: FileInfo, text: str) -> List[Segment]:
        """Produce ordered Segments for a file's full text."""
        segments = [
            Segment(
                text=chunk,
                index=i,
                file_path=str(info.path),
                file_name=info.name,
                file_size=info.size,
            )
            for i, chunk in enumerate(self.split(text, info.size))
        ]
        logger.info(f"Split text file {info.name} into {len(segments)} segments")
        return segments
