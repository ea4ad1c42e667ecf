"""Private, permission-hardened runtime storage for hook state.

Every record the hooks persist lives under a single runtime root owned by
the invoking user with mode 0700. Hooks are separate short-lived processes
with no shared memory, so the only concurrency primitive is write-to-temp
then os.replace() inside the same directory (atomic on POSIX). Readers never
observe a partially written file; racing writers resolve last-writer-wins.

Any failure of the ownership/permission/containment checks raises
SecurityViolation. Callers must not fall back to operating on unsafe storage.

Layout:
  <root>/active-session.json          global index {session}
  <root>/<session>/state.json         spawn metadata
  <root>/<session>/hook-last-poll.json
  <root>/<session>/saved.json         capture marker
"""

import json
import logging
import os
import re
import stat
import tempfile

from shared import config
from shared.errors import SecurityViolation, StateCorruption, ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_SESSION_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


def sanitize_session(name):
    """Collapse arbitrary input to [A-Za-z0-9_.-], capped in length.

    Returns "" for empty/blank input; callers decide whether that is an error.
    """
    raw = str(name or "").strip()
    if not raw:
        return ""
    return _UNSAFE_SESSION_CHARS.sub("_", raw)[:config.SESSION_NAME_MAX_LENGTH]


def require_session(name, operation="session"):
    """Sanitize and validate a session name, raising ValidationError if unusable."""
    session = sanitize_session(name)
    if not session:
        raise ValidationError(f"Invalid empty session name for {operation}.")
    if session in (".", ".."):
        raise ValidationError(f"Invalid session name {session!r} for {operation}.")
    return session


def _posix_owner_checks():
    return hasattr(os, "getuid") and os.name != "nt"


class RuntimeStore:
    """File-backed store rooted at a private directory."""

    def __init__(self, root=None):
        self.root = os.path.abspath(root or config.runtime_dir())

    # ── Paths ───────────────────────────────────────────────────────────────

    @property
    def global_index(self):
        return os.path.join(self.root, config.GLOBAL_INDEX_NAME)

    def session_dir(self, session):
        return os.path.join(self.root, require_session(session))

    def state_file(self, session):
        return os.path.join(self.session_dir(session), config.STATE_FILE_NAME)

    def poll_file(self, session):
        return os.path.join(self.session_dir(session), config.POLL_FILE_NAME)

    def marker_file(self, session):
        return os.path.join(self.session_dir(session), config.MARKER_FILE_NAME)

    def is_inside(self, candidate):
        """True if candidate resolves to the root or a path below it."""
        target = os.path.abspath(candidate)
        return target == self.root or target.startswith(self.root + os.sep)

    # ── Directory hardening ─────────────────────────────────────────────────

    def ensure_secure_dir(self, path):
        """Create path if needed, then assert it is a private real directory.

        Group/other permission bits are tightened once; if they survive the
        chmod the directory is rejected.
        """
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            try:
                os.makedirs(path, mode=0o700, exist_ok=True)
            except FileExistsError as e:
                # Appeared as a non-directory between lstat and makedirs
                raise SecurityViolation(f"Runtime path is not a real directory: {path}") from e
            st = os.lstat(path)
        if stat.S_ISLNK(st.st_mode) or not stat.S_ISDIR(st.st_mode):
            raise SecurityViolation(f"Runtime path is not a real directory: {path}")
        if not _posix_owner_checks():
            return
        if st.st_uid != os.getuid():
            raise SecurityViolation(f"Runtime path not owned by current user: {path}")
        if st.st_mode & 0o077:
            logger.warning("Tightening permissions on %s (mode %o)", path, stat.S_IMODE(st.st_mode))
            os.chmod(path, 0o700)
            st = os.lstat(path)
            if st.st_mode & 0o077:
                raise SecurityViolation(f"Runtime path must be mode 0700: {path}")

    def ensure_runtime_root(self):
        self.ensure_secure_dir(self.root)

    def ensure_session_dir(self, session):
        self.ensure_runtime_root()
        path = self.session_dir(session)
        self.ensure_secure_dir(path)
        return path

    # ── Writes ──────────────────────────────────────────────────────────────

    def write_atomic(self, path, text):
        """Write text to path via a unique sibling temp file and os.replace()."""
        target = os.path.abspath(path)
        if not self.is_inside(target) or target == self.root:
            raise SecurityViolation(f"Refusing to write outside runtime dir: {target}")
        dir_ = os.path.dirname(target)
        # makedirs() only applies the mode to the leaf, so harden the root first
        self.ensure_runtime_root()
        if dir_ != self.root:
            self.ensure_secure_dir(dir_)
        fd, tmp_path = tempfile.mkstemp(dir=dir_, prefix=f".{os.path.basename(target)}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def write_json(self, path, record):
        self.write_atomic(path, json.dumps(record, indent=2))

    # ── Reads ───────────────────────────────────────────────────────────────

    def read_json(self, path):
        """Return the JSON object at path, or None if the file does not exist.

        Raises StateCorruption for unreadable files, invalid JSON, or a
        top-level value that is not an object.
        """
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StateCorruption(path, str(e)) from e
        if not isinstance(data, dict):
            raise StateCorruption(path, f"expected object, got {type(data).__name__}")
        return data

    def read_json_or_heal(self, path):
        """read_json() that deletes a corrupt file and reports it as absent."""
        try:
            return self.read_json(path)
        except StateCorruption as e:
            logger.warning("%s; removing", e)
            self.discard(path)
            return None

    # ── Deletes ─────────────────────────────────────────────────────────────

    def delete_owned_file(self, path):
        """Unlink a regular file we own inside the root. Missing is a no-op."""
        target = os.path.abspath(path)
        if not self.is_inside(target):
            raise SecurityViolation(f"Refusing to delete path outside runtime dir: {target}")
        try:
            st = os.lstat(target)
        except FileNotFoundError:
            return
        if stat.S_ISDIR(st.st_mode) or stat.S_ISLNK(st.st_mode) or not stat.S_ISREG(st.st_mode):
            raise SecurityViolation(f"Refusing to delete non-regular file: {target}")
        if _posix_owner_checks() and st.st_uid != os.getuid():
            raise SecurityViolation(f"Refusing to delete file not owned by current user: {target}")
        try:
            os.unlink(target)
        except FileNotFoundError:
            pass  # Lost a race with another hook deleting the same file

    def discard(self, path):
        """Best-effort delete_owned_file(): failures are logged, not raised."""
        try:
            self.delete_owned_file(path)
        except (OSError, SecurityViolation) as e:
            logger.warning("Could not remove %s: %s", path, e)
