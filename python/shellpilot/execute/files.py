"""File preview and atomic write.

preview():
- Reads the current file, refusing files over max_file_bytes and binary files
  (NUL bytes or invalid UTF-8)
- Renders a unified diff with a/ and b/ labels and 3 lines of context; a new
  file is diffed against /dev/null so every line shows as added

write():
- Writes to a temp file in the target directory, fsyncs it, renames it over
  the target with os.replace, then fsyncs the directory
- A crash mid-write never leaves a half-written file at the target path
- Keeps the existing file's permission bits; new files get 0644
"""

import difflib
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path

from shellpilot.errors import BinaryFileError, FileTooLargeError, WriteFailedError
from shellpilot.intent import FileWriteProposal
from shellpilot.logging import get_logger
from shellpilot.redact import safe_kv
from shellpilot.safety.states import FilePreview

logger = get_logger(__name__)

DEFAULT_MAX_FILE_BYTES = 1024 * 1024  # 1 MiB
DIFF_CONTEXT_LINES = 3
NEW_FILE_MODE = 0o644


@dataclass(frozen=True)
class FileWriteResult:
    """Outcome of one file write.

    Attributes:
        path: Target path written
        bytes_written: Size of the new content in bytes
        diff_applied: True if an existing file was changed, False for a new file
    """

    path: Path
    bytes_written: int
    diff_applied: bool


def render_diff(old: str, new: str, display_path: str, *, is_new_file: bool) -> str:
    """Unified diff between old and new content."""
    fromfile = "/dev/null" if is_new_file else f"a/{display_path}"
    lines = difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=fromfile,
        tofile=f"b/{display_path}",
        n=DIFF_CONTEXT_LINES,
    )
    return "".join(line if line.endswith("\n") else line + "\n" for line in lines)


def _fsync_dir(dir_path: Path) -> None:
    """Directory fsync to persist the rename. Unsupported platforms are skipped."""
    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY
    try:
        fd = os.open(str(dir_path), flags)
    except OSError as e:
        logger.debug("executor.file.dir_fsync_skipped", **safe_kv(errno=e.errno))
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug("executor.file.dir_fsync_skipped", **safe_kv(errno=e.errno))
    finally:
        os.close(fd)


class FileWriter:
    """Previews and writes approved file proposals."""

    def __init__(self, *, max_file_bytes: int = DEFAULT_MAX_FILE_BYTES):
        self._max_file_bytes = max_file_bytes

    def preview(self, proposal: FileWriteProposal, *, display_root: Path | None = None) -> FilePreview:
        """Read the current file and render the diff.

        Args:
            proposal: The proposed write.
            display_root: Diff labels are shown relative to this directory when possible.

        Raises:
            FileTooLargeError: If the existing file is over max_file_bytes.
            BinaryFileError: If the existing file is not UTF-8 text.
            WriteFailedError: If the target exists but cannot be read as a file.
        """
        path = Path(proposal.path).expanduser()
        old_content, is_new_file = self._read_current(path)
        display_path = self._display_path(path, display_root)
        diff = render_diff(old_content, proposal.new_content, display_path, is_new_file=is_new_file)
        return FilePreview(
            path=path,
            old_content=old_content,
            new_content=proposal.new_content,
            is_new_file=is_new_file,
            diff=diff,
        )

    def write(self, preview: FilePreview) -> FileWriteResult:
        """Atomically replace the target with the previewed content.

        Raises:
            WriteFailedError: On any OS error.
        """
        path = preview.path
        data = preview.new_content.encode("utf-8")
        tmp_path: Path | None = None

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else NEW_FILE_MODE

            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)

            os.replace(tmp_path, path)
            tmp_path = None
            _fsync_dir(path.parent)
        except OSError as e:
            logger.error(
                "executor.file.failed",
                **safe_kv(errno=e.errno, new_content_length=len(data)),
            )
            raise WriteFailedError(path, e.strerror or type(e).__name__) from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()

        result = FileWriteResult(path=path, bytes_written=len(data), diff_applied=not preview.is_new_file)
        logger.info(
            "executor.file.written",
            **safe_kv(bytes_written=result.bytes_written, diff_applied=result.diff_applied),
        )
        return result

    def _read_current(self, path: Path) -> tuple[str, bool]:
        if not path.exists():
            return "", True
        if not path.is_file():
            raise WriteFailedError(path, "not a regular file")

        try:
            size = path.stat().st_size
            if size > self._max_file_bytes:
                raise FileTooLargeError(path, size, self._max_file_bytes)
            data = path.read_bytes()
        except OSError as e:
            raise WriteFailedError(path, e.strerror or type(e).__name__) from e

        if b"\x00" in data:
            raise BinaryFileError(path)
        try:
            return data.decode("utf-8"), False
        except UnicodeDecodeError as e:
            raise BinaryFileError(path) from e

    @staticmethod
    def _display_path(path: Path, display_root: Path | None) -> str:
        resolved = path.resolve()
        if display_root is not None and resolved.is_relative_to(display_root):
            return resolved.relative_to(display_root).as_posix()
        return path.as_posix().lstrip("/")
