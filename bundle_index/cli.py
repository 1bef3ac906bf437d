"""Command-line entry point for indexing support bundles."""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .cache import CacheStore
from .config import IndexerConfig, get_config, set_config
from .embedder import SentenceTransformerEmbedder
from .errors import InvalidDirectoryError
from .indexer import TextFileIndexer
from .vector_store import InMemoryVectorStore, LeannVectorStore


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundle-index",
        description="Index support bundle text files into a vector store",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--cache-dir", help="Embedding cache directory")

    commands = parser.add_subparsers(dest="command", required=True)

    index = commands.add_parser("index", help="Index files from a support bundle directory")
    index.add_argument("path", help="Directory to index")
    index.add_argument("--leann", action="store_true", help="Write the vectors to a LEANN index")
    index.add_argument("--index-path", help="LEANN index output path (with --leann)")

    commands.add_parser("status", help="Show what the cache holds")

    cache = commands.add_parser("cache", help="Inspect or clear the embedding cache")
    cache.add_argument("action", choices=["stats", "clear"])

    return parser


def _print_run_status(indexer: TextFileIndexer) -> None:
    print("Index Status:")
    print(f"  - Total text segments: {indexer.total_segment_count()}")
    print(f"  - Text files indexed: {indexer.indexed_file_count()}")
    print(f"  - {indexer.cache_stats()}")


def _print_cache_status(cache: CacheStore) -> None:
    print("Index Status:")
    print(f"  - Cached text files: {len(cache.mod_times())}")
    print(f"  - Cached text segments: {cache.segment_count()}")
    print(f"  - {cache.stats()}")


def _index(args: argparse.Namespace, config: IndexerConfig) -> int:
    if args.leann:
        try:
            vector_store = LeannVectorStore(config).open()
        except ImportError:
            print("LEANN output needs the leann extra: pip install 'bundle-index[leann]'")
            return 1
    else:
        vector_store = InMemoryVectorStore()

    indexer = TextFileIndexer(SentenceTransformerEmbedder(config), vector_store, config)

    print(f"Indexing text files from: {args.path}")
    start_time = time.monotonic()
    try:
        stats = indexer.run(args.path)
    except InvalidDirectoryError as e:
        print(f"Error indexing text files: {e}")
        return 1
    elapsed = time.monotonic() - start_time
    print(f"Successfully indexed {stats.files_indexed} text files in {elapsed:.2f} seconds")
    print(stats)
    _print_run_status(indexer)

    if args.leann:
        if len(vector_store) == 0:
            print("No segments to write; LEANN index not built.")
        else:
            index_path = vector_store.build(Path(args.index_path) if args.index_path else None)
            print(f"LEANN index written to: {index_path}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s"
    )

    config: IndexerConfig = get_config()
    if args.cache_dir:
        config.cache_dir = Path(args.cache_dir)
        config.__post_init__()
        set_config(config)

    if args.command == "index":
        return _index(args, config)

    cache = CacheStore(config)

    if args.command == "status":
        _print_cache_status(cache)

    elif args.action == "clear":
        cache.clear()
        print("Cache cleared successfully.")

    else:
        print("Cache Statistics:")
        print(f"  - {cache.stats()}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
