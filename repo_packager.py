"""
Codebase snapshot provider: packs the repository into a single text blob
(via repomix by default) for use as planning context.
"""

import logging
import os
import re
import shlex
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from backend import Backend
from fingerprint import fingerprint_input
from planner.errors import SnapshotError

logger = logging.getLogger(__name__)

_FILE_TAG_RE = re.compile(r'<file path="([^"]+)"')
_FILE_BANNER_RE = re.compile(r"^====\s*([^=\n]+?)\s*====\s*$", re.MULTILINE)

SAMPLE_FILE_COUNT = 3


@dataclass
class PackSummary:
    file_count: int = 0
    total_lines: int = 0
    size_kb: int = 0
    estimated_tokens: int = 0
    sample_files: List[str] = field(default_factory=list)
    has_more_files: bool = False
    remaining_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PackResult:
    content: str
    fingerprint_input: str
    summary: PackSummary


def summarize_pack(content: str) -> PackSummary:
    """Derive file/line/size statistics from packed repository text."""
    files = _FILE_TAG_RE.findall(content)
    if not files:
        files = [m.strip() for m in _FILE_BANNER_RE.findall(content)]
    return PackSummary(
        file_count=len(files),
        total_lines=len(content.split("\n")),
        size_kb=round(len(content) / 1024),
        # ~4 chars per token
        estimated_tokens=round(len(content) / 4),
        sample_files=files[:SAMPLE_FILE_COUNT],
        has_more_files=len(files) > SAMPLE_FILE_COUNT,
        remaining_count=max(0, len(files) - SAMPLE_FILE_COUNT),
    )


class SnapshotProvider(ABC):
    """Produces packed repository text plus a fingerprint input on demand."""

    @abstractmethod
    def pack(self, subpath: Optional[str] = None) -> PackResult:
        """Pack the project (or a subpath of it)."""

    @abstractmethod
    def fingerprint_input(self) -> str:
        """Text identifying the current working-tree state."""


class RepomixPackager(SnapshotProvider):
    """Runs the pack command through a backend and collects its output file."""

    def __init__(self, backend: Backend, command: str = "repomix", timeout: int = 300,
                 fingerprint_limit: int = 100):
        self.backend = backend
        self.command = command
        self.timeout = timeout
        self.fingerprint_limit = fingerprint_limit

    def _check_installed(self) -> None:
        executable = shlex.split(self.command)[0]
        _, _, rc = self.backend.run_command(f"command -v {shlex.quote(executable)}", cwd=".", timeout=10)
        if rc != 0:
            raise SnapshotError(
                f"{executable}: command not found. Install it (e.g. `npm install -g repomix`) "
                f"or set PACK_COMMAND."
            )

    def fingerprint_input(self) -> str:
        return fingerprint_input(self.backend, limit=self.fingerprint_limit)

    def pack(self, subpath: Optional[str] = None) -> PackResult:
        self._check_installed()

        output_name = f".repomix-output-{uuid.uuid4().hex[:8]}.txt"
        cmd = f"{self.command} --output {shlex.quote(output_name)}"
        if subpath:
            cmd += f" {shlex.quote(subpath)}"

        logger.info(f"Packing repository: {cmd}")
        try:
            _, stderr, rc = self.backend.run_command(cmd, cwd=".", timeout=self.timeout)
            if rc != 0:
                raise SnapshotError(f"Failed to pack repository (exit {rc}): {stderr.strip()[:500]}")
            try:
                content = self.backend.read_file(output_name)
            except OSError as e:
                raise SnapshotError(f"Pack command produced no output file: {e}") from e
        finally:
            if self.backend.file_exists(output_name):
                self.backend.remove_file(output_name)

        summary = summarize_pack(content)
        logger.info(
            f"Repository packed: {summary.file_count} files, {summary.total_lines} lines, "
            f"~{summary.estimated_tokens} tokens"
        )
        return PackResult(content=content, fingerprint_input=self.fingerprint_input(), summary=summary)


def format_summary(summary: PackSummary) -> str:
    """Human-readable multi-line summary of a pack."""
    lines = [
        f"Files processed: {summary.file_count}",
        f"Total lines: {summary.total_lines:,}",
        f"Content size: {summary.size_kb} KB",
        f"Estimated tokens: {summary.estimated_tokens:,}",
    ]
    if summary.sample_files:
        lines.append("Sample files:")
        lines.extend(f"  - {name}" for name in summary.sample_files)
        if summary.has_more_files:
            lines.append(f"  ... and {summary.remaining_count} more files")
    return "\n".join(lines)
