"""Tests for working-tree fingerprints and repository packing."""

import shlex

import pytest

from backend import Backend, get_backend
from conftest import PACKED_CODEBASE
from fingerprint import compute_fingerprint, digest, fingerprint_input, invalidate_gitignore_cache, sampled_listing
from planner.errors import SnapshotError
from repo_packager import RepomixPackager, format_summary, summarize_pack


class ScriptedBackend(Backend):
    """In-memory backend; the pack command 'writes' its --output file."""

    def __init__(self, working_directory="/work", git_rc=0, git_out="100644 abc 0\tsrc/app.py\n",
                 pack_output=PACKED_CODEBASE, installed=True, pack_rc=0):
        self._wd = working_directory
        self.git_rc = git_rc
        self.git_out = git_out
        self.pack_output = pack_output
        self.installed = installed
        self.pack_rc = pack_rc
        self.files = {}
        self.commands = []

    @property
    def working_directory(self):
        return self._wd

    def read_file(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def file_exists(self, path):
        return path in self.files

    def remove_file(self, path):
        del self.files[path]

    def run_command(self, command, cwd=".", timeout=30):
        self.commands.append(command)
        if command.startswith("git ls-files"):
            return (self.git_out, "fatal: not a git repository", self.git_rc)
        if command.startswith("command -v"):
            return ("", "", 0 if self.installed else 1)
        if self.pack_rc != 0:
            return ("", "boom", self.pack_rc)
        argv = shlex.split(command)
        self.files[argv[argv.index("--output") + 1]] = self.pack_output
        return ("", "", 0)


@pytest.fixture(autouse=True)
def _fresh_gitignore_cache():
    invalidate_gitignore_cache()
    yield
    invalidate_gitignore_cache()


def _touch(path, text="x"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def test_sampled_listing_skips_ignored_and_test_paths(tmp_path):
    _touch(tmp_path / "src" / "app.py")
    _touch(tmp_path / "src" / "app.test.js")
    _touch(tmp_path / "test" / "test_app.py")
    _touch(tmp_path / "node_modules" / "lib" / "index.js")
    _touch(tmp_path / "build" / "out.js")
    _touch(tmp_path / "notes.txt")
    _touch(tmp_path / "README.md")
    (tmp_path / ".gitignore").write_text("build/\n")

    listing = sampled_listing(str(tmp_path))
    paths = [line.split(":")[0] for line in listing.splitlines()]

    assert paths == ["src/app.py", "README.md"]


def test_sampled_listing_respects_limit(tmp_path):
    for i in range(5):
        _touch(tmp_path / f"m{i}.py")
    assert len(sampled_listing(str(tmp_path), limit=3).splitlines()) == 3


def test_fingerprint_changes_when_file_grows(tmp_path):
    target = tmp_path / "app.py"
    _touch(target, "print(1)\n")
    backend = ScriptedBackend(working_directory=str(tmp_path), git_rc=128)

    before = compute_fingerprint(backend)
    target.write_text("print(1)\nprint(2)\n")
    after = compute_fingerprint(backend)

    assert before != after
    assert len(before) == 16


def test_git_index_preferred_when_available():
    backend = ScriptedBackend(git_rc=0)
    assert fingerprint_input(backend) == backend.git_out


def test_falls_back_without_git(tmp_path):
    _touch(tmp_path / "main.go")
    backend = ScriptedBackend(working_directory=str(tmp_path), git_rc=128)
    assert fingerprint_input(backend).startswith("main.go:")


def test_digest_is_stable():
    assert digest("abc") == digest("abc")
    assert digest("abc") != digest("abd")
    assert len(digest("")) == 16


def test_packager_collects_output_and_cleans_up():
    backend = ScriptedBackend()
    result = RepomixPackager(backend).pack()

    assert result.content == PACKED_CODEBASE
    assert result.fingerprint_input == backend.git_out
    assert result.summary.file_count == 2
    assert backend.files == {}
    assert any("--output" in c for c in backend.commands)


def test_packager_reports_missing_command():
    with pytest.raises(SnapshotError, match="command not found"):
        RepomixPackager(ScriptedBackend(installed=False)).pack()


def test_packager_reports_failed_pack():
    with pytest.raises(SnapshotError, match="exit 2"):
        RepomixPackager(ScriptedBackend(pack_rc=2)).pack()


def test_summary_counts_files_and_formats():
    content = "".join(f'<file path="f{i}.py">\n</file>\n' for i in range(5))
    summary = summarize_pack(content)

    assert summary.file_count == 5
    assert summary.sample_files == ["f0.py", "f1.py", "f2.py"]
    assert summary.remaining_count == 2
    assert "... and 2 more files" in format_summary(summary)

    banner = summarize_pack("==== a.py ====\nx\n==== b.py ====\ny\n")
    assert banner.file_count == 2


def test_local_backend_runs_commands(tmp_path):
    backend = get_backend(str(tmp_path))
    stdout, _, rc = backend.run_command("echo hi")
    assert (stdout.strip(), rc) == ("hi", 0)
    with pytest.raises(ValueError):
        backend.read_file("../outside.txt")
