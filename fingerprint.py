"""
Working-tree fingerprints used to decide whether a cached codebase snapshot is still valid.

The git index digest is preferred. Without git, a sampled listing of
path/size/mtime for a bounded file set is hashed instead. The fallback is a
best-effort heuristic: changes outside the sampled set go unnoticed.
"""

import hashlib
import logging
import os
from typing import Dict, List, Optional, Set

import pathspec

from backend import Backend

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 16

# Extensions sampled by the fallback, in sampling order
SAMPLED_EXTENSIONS: List[str] = [
    ".js", ".ts", ".jsx", ".tsx", ".py", ".rb", ".php", ".go", ".java",
    ".c", ".cpp", ".h", ".md", ".json", ".yml", ".yaml",
]

_ALWAYS_SKIP_DIRS: Set[str] = {
    ".git", "node_modules", "__pycache__", ".venv", "venv",
    ".mypy_cache", ".pytest_cache", ".tox", "test", ".bedrock-planner",
}

_gitignore_cache: Dict[str, Optional[pathspec.PathSpec]] = {}


def _load_gitignore(working_directory: str) -> Optional[pathspec.PathSpec]:
    """Load and cache .gitignore patterns for a project root. None if there is no .gitignore."""
    if working_directory in _gitignore_cache:
        return _gitignore_cache[working_directory]

    spec = None
    gitignore_path = os.path.join(working_directory, ".gitignore")
    try:
        if os.path.isfile(gitignore_path):
            with open(gitignore_path, "r", encoding="utf-8", errors="replace") as f:
                spec = pathspec.PathSpec.from_lines("gitwildmatch", f)
    except OSError as e:
        logger.debug(f"Failed to parse .gitignore: {e}")

    _gitignore_cache[working_directory] = spec
    return spec


def invalidate_gitignore_cache(working_directory: Optional[str] = None) -> None:
    """Clear cached .gitignore specs. Call when .gitignore changes."""
    if working_directory:
        _gitignore_cache.pop(working_directory, None)
    else:
        _gitignore_cache.clear()


def _is_test_file(name: str) -> bool:
    # mirrors the "**/*.test.*" exclusion
    return ".test." in name


def _git_index_listing(backend: Backend) -> Optional[str]:
    """Return `git ls-files -s` output, or None when git is unavailable or this is not a work tree."""
    try:
        stdout, stderr, rc = backend.run_command("git ls-files -s", cwd=".", timeout=30)
    except OSError as e:
        logger.debug(f"git unavailable for fingerprinting: {e}")
        return None
    if rc != 0:
        logger.debug(f"git ls-files failed (rc={rc}): {stderr.strip()[:200]}")
        return None
    return stdout


def sampled_listing(working_directory: str, limit: int = 100) -> str:
    """Sampled `path:size:mtime_ms` lines, at most `limit` files per extension."""
    gitignore_spec = _load_gitignore(working_directory)
    by_ext: Dict[str, List[str]] = {ext: [] for ext in SAMPLED_EXTENSIONS}

    for root, dirs, files in os.walk(working_directory):
        rel_root = os.path.relpath(root, working_directory)
        rel_root = "" if rel_root == "." else rel_root.replace(os.sep, "/")
        kept_dirs = []
        for d in sorted(dirs):
            rel_dir = f"{rel_root}/{d}" if rel_root else d
            if d in _ALWAYS_SKIP_DIRS:
                continue
            if gitignore_spec and gitignore_spec.match_file(rel_dir + "/"):
                continue
            kept_dirs.append(d)
        dirs[:] = kept_dirs

        for name in sorted(files):
            _, ext = os.path.splitext(name)
            if ext not in by_ext or _is_test_file(name):
                continue
            rel = f"{rel_root}/{name}" if rel_root else name
            if gitignore_spec and gitignore_spec.match_file(rel):
                continue
            by_ext[ext].append(rel)

    lines: List[str] = []
    for ext in SAMPLED_EXTENSIONS:
        for rel in sorted(by_ext[ext])[:limit]:
            try:
                st = os.stat(os.path.join(working_directory, rel))
            except OSError:
                continue
            lines.append(f"{rel}:{st.st_size}:{int(st.st_mtime * 1000)}")
    return "\n".join(lines) + ("\n" if lines else "")


def fingerprint_input(backend: Backend, limit: int = 100) -> str:
    """Text whose digest identifies the current state of the working tree."""
    listing = _git_index_listing(backend)
    if listing is not None:
        return listing
    logger.info("No git index available; falling back to sampled file metadata for fingerprint")
    return sampled_listing(backend.working_directory, limit=limit)


def digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def compute_fingerprint(backend: Backend, limit: int = 100) -> str:
    """Short SHA-256 fingerprint of the working tree."""
    return digest(fingerprint_input(backend, limit=limit))
