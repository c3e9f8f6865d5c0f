"""Command-line upload client: tag local images through a running VisionTag server."""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from visiontag.client.files import LocalImageFile
from visiontag.client.orchestrator import UploadOrchestrator
from visiontag.client.rpc import RpcClient
from visiontag.client.state import UploadState
from visiontag.config import get_settings
from visiontag.core.validation import MAX_FILE_SIZE
from visiontag.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from visiontag.client.state import UploadEntry

logger = logging.getLogger(__name__)


@dataclass
class UploadReport:
    """Outcome of one batch: final entries plus files rejected before upload."""

    entries: list[UploadEntry] = field(default_factory=list)
    rejected: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.rejected and all(entry.status == "completed" for entry in self.entries)


async def upload_files(
    paths: Sequence[Path],
    rpc: RpcClient,
    *,
    max_file_size: int = MAX_FILE_SIZE,
) -> UploadReport:
    """Run every path through the upload pipeline against ``rpc``."""
    report = UploadReport()
    state = UploadState()

    def reject(filename: str, message: str) -> None:
        logger.warning("Rejected %s: %s", filename, message)
        report.rejected.append((filename, message))

    orchestrator = UploadOrchestrator(state, rpc, on_rejected=reject, max_file_size=max_file_size)
    results = await orchestrator.process_files([LocalImageFile(path) for path in paths])
    report.entries = [entry for entry in results if entry is not None]
    if state.error is not None:
        logger.error("Upload batch failed: %s", state.error)
    orchestrator.clear()
    return report


def format_entry(entry: UploadEntry) -> str:
    if entry.status == "completed" and entry.analysis is not None:
        tags = ", ".join(f"{tag.label} ({tag.confidence:.0%})" for tag in entry.analysis.tags)
        return f"{entry.filename}: completed  {tags or 'no tags'}"
    return f"{entry.filename}: {entry.status}  {entry.error or ''}".rstrip()


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="visiontag-upload",
        description="Upload images to a VisionTag server and print their tags.",
    )
    parser.add_argument("paths", nargs="+", type=Path, help="Image files to tag")
    parser.add_argument(
        "--url",
        default=settings.app_url,
        help=f"Server base URL (default: {settings.app_url})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.request_timeout,
        help="Per-request timeout in seconds",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Call healthCheck before uploading and stop if the server does not answer",
    )
    return parser


async def _run(args: argparse.Namespace, rpc: RpcClient) -> int:
    try:
        if args.check:
            try:
                health = await rpc.health_check()
            except TransportError as exc:
                print(f"Server not reachable at {args.url}: {exc}")
                return 2
            logger.info("Server says: %s", health.message)

        report = await upload_files(args.paths, rpc, max_file_size=get_settings().max_file_size)
    finally:
        await rpc.aclose()

    for filename, message in report.rejected:
        print(f"{filename}: rejected  {message}")
    for entry in report.entries:
        print(format_entry(entry))
    return 0 if report.ok else 1


def main(argv: Sequence[str] | None = None, *, rpc: RpcClient | None = None) -> int:
    """Entry point for ``visiontag-upload``; returns the process exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    client = rpc if rpc is not None else RpcClient.from_url(args.url, timeout=args.timeout)
    return asyncio.run(_run(args, client))


if __name__ == "__main__":
    raise SystemExit(main())
