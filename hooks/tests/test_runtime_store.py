#!/usr/bin/env python3
"""RuntimeStore: directory hardening, atomic writes, guarded deletes."""

import json
import os
import stat
import threading
import unittest
from unittest import mock

from tests.harness import RuntimeTestCase

from shared import config
from shared.errors import SecurityViolation, StateCorruption, ValidationError
from shared.runtime_store import RuntimeStore, require_session, sanitize_session


class TestSanitizeSession(unittest.TestCase):
    def test_safe_name_unchanged(self):
        self.assertEqual(sanitize_session("proj-1.alpha_2"), "proj-1.alpha_2")

    def test_unsafe_characters_replaced(self):
        self.assertEqual(sanitize_session("../etc/passwd"), ".._etc_passwd")
        self.assertEqual(sanitize_session("a b;c"), "a_b_c")

    def test_whitespace_trimmed(self):
        self.assertEqual(sanitize_session("  alpha \n"), "alpha")

    def test_empty_and_none(self):
        self.assertEqual(sanitize_session(""), "")
        self.assertEqual(sanitize_session("   "), "")
        self.assertEqual(sanitize_session(None), "")

    def test_length_capped(self):
        self.assertEqual(len(sanitize_session("x" * 500)), config.SESSION_NAME_MAX_LENGTH)

    def test_require_session_rejects_empty_and_dots(self):
        for bad in ("", "  ", ".", ".."):
            with self.assertRaises(ValidationError):
                require_session(bad)


class TestSecureDirectory(RuntimeTestCase):
    def test_creates_root_with_private_mode(self):
        self.store.ensure_runtime_root()
        st = os.lstat(self.runtime_dir)
        self.assertTrue(stat.S_ISDIR(st.st_mode))
        self.assertEqual(stat.S_IMODE(st.st_mode) & 0o077, 0)

    def test_group_readable_root_is_tightened(self):
        os.makedirs(self.runtime_dir)
        os.chmod(self.runtime_dir, 0o750)
        self.store.ensure_runtime_root()
        self.assertEqual(stat.S_IMODE(os.lstat(self.runtime_dir).st_mode), 0o700)

    def test_untightenable_root_is_a_security_violation(self):
        os.makedirs(self.runtime_dir)
        os.chmod(self.runtime_dir, 0o755)
        with mock.patch("shared.runtime_store.os.chmod"):
            with self.assertRaises(SecurityViolation):
                self.store.ensure_runtime_root()

    def test_symlinked_root_rejected(self):
        real = os.path.join(self.tmpdir, "real")
        os.makedirs(real, mode=0o700)
        os.symlink(real, self.runtime_dir)
        with self.assertRaises(SecurityViolation):
            self.store.ensure_runtime_root()

    def test_root_that_is_a_file_rejected(self):
        with open(self.runtime_dir, "w") as f:
            f.write("not a dir")
        with self.assertRaises(SecurityViolation):
            self.store.ensure_runtime_root()

    def test_session_path_that_is_a_file_rejected(self):
        self.store.ensure_runtime_root()
        with open(os.path.join(self.runtime_dir, "alpha"), "w") as f:
            f.write("not a dir")
        with self.assertRaises(SecurityViolation):
            self.store.ensure_session_dir("alpha")

    def test_session_path_symlinked_to_file_rejected(self):
        self.store.ensure_runtime_root()
        target = os.path.join(self.tmpdir, "plain-file")
        with open(target, "w") as f:
            f.write("x")
        os.symlink(target, os.path.join(self.runtime_dir, "alpha"))
        with self.assertRaises(SecurityViolation):
            self.store.ensure_session_dir("alpha")

    def test_write_into_file_typed_session_path_rejected(self):
        self.store.ensure_runtime_root()
        with open(os.path.join(self.runtime_dir, "alpha"), "w") as f:
            f.write("not a dir")
        with self.assertRaises(SecurityViolation):
            self.store.write_json(self.store.poll_file("alpha"), {"last_poll_ms": {}})

    def test_foreign_owner_rejected(self):
        os.makedirs(self.runtime_dir, mode=0o700)
        other_uid = os.lstat(self.runtime_dir).st_uid + 1
        with mock.patch("shared.runtime_store.os.getuid", return_value=other_uid):
            with self.assertRaises(SecurityViolation):
                self.store.ensure_runtime_root()

    def test_default_root_uses_uid_suffix(self):
        with mock.patch.dict(os.environ, {"XDG_RUNTIME_DIR": self.tmpdir}, clear=False):
            os.environ.pop("NTM_ORCH_RUNTIME_DIR", None)
            root = RuntimeStore().root
        self.assertEqual(root, os.path.join(self.tmpdir, f"ntm-orch-{config.current_uid()}"))

    def test_override_root_from_environment(self):
        with mock.patch.dict(os.environ, {"NTM_ORCH_RUNTIME_DIR": self.runtime_dir}):
            self.assertEqual(RuntimeStore().root, self.runtime_dir)


class TestWriteAtomic(RuntimeTestCase):
    def test_write_and_read_json(self):
        path = self.store.state_file("alpha")
        self.store.write_json(path, {"session": "alpha"})
        self.assertEqual(self.store.read_json(path), {"session": "alpha"})
        self.assertEqual(stat.S_IMODE(os.lstat(os.path.dirname(path)).st_mode) & 0o077, 0)

    def test_refuses_paths_outside_root(self):
        with self.assertRaises(SecurityViolation):
            self.store.write_atomic(os.path.join(self.tmpdir, "escape.json"), "{}")
        with self.assertRaises(SecurityViolation):
            self.store.write_atomic(os.path.join(self.runtime_dir, "..", "escape.json"), "{}")

    def test_no_temp_files_left_behind(self):
        path = self.store.marker_file("alpha")
        self.store.write_atomic(path, "{}")
        self.store.write_atomic(path, '{"a": 1}')
        self.assertEqual(os.listdir(os.path.dirname(path)), [config.MARKER_FILE_NAME])

    def test_failed_write_cleans_temp_and_keeps_old_value(self):
        path = self.store.state_file("alpha")
        self.store.write_json(path, {"v": 1})
        with mock.patch("shared.runtime_store.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                self.store.write_json(path, {"v": 2})
        self.assertEqual(self.store.read_json(path), {"v": 1})
        self.assertEqual(os.listdir(os.path.dirname(path)), [config.STATE_FILE_NAME])

    def test_reader_never_sees_partial_write_from_slow_writer(self):
        path = self.store.state_file("alpha")
        self.store.write_json(path, {"v": "old"})
        big = {"v": "new", "payload": "x" * 200_000}
        observed = []
        real_replace = os.replace

        def slow_replace(src, dst):
            # Temp file is fully written, target still holds the old record
            observed.append(self.store.read_json(dst))
            with open(src) as f:
                observed.append(json.load(f))
            real_replace(src, dst)

        with mock.patch("shared.runtime_store.os.replace", side_effect=slow_replace):
            self.store.write_json(path, big)

        self.assertEqual(observed[0], {"v": "old"})
        self.assertEqual(observed[1], big)
        self.assertEqual(self.store.read_json(path), big)

    def test_concurrent_writers_never_produce_torn_file(self):
        path = self.store.poll_file("alpha")
        self.store.write_json(path, {"writer": -1})
        errors = []
        stop = threading.Event()

        def writer(n):
            record = {"writer": n, "payload": str(n) * 50_000}
            for _ in range(20):
                self.store.write_json(path, record)

        def reader():
            while not stop.is_set():
                try:
                    data = self.store.read_json(path)
                except StateCorruption as e:
                    errors.append(e)
                    return
                if data["writer"] >= 0 and data["payload"] != str(data["writer"]) * 50_000:
                    errors.append(data["writer"])
                    return

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        writers = [threading.Thread(target=writer, args=(n,)) for n in range(6)]
        for t in writers:
            t.start()
        for t in writers:
            t.join()
        stop.set()
        reader_thread.join()
        self.assertEqual(errors, [])


class TestReadJson(RuntimeTestCase):
    def test_missing_is_none(self):
        self.assertIsNone(self.store.read_json(self.store.state_file("ghost")))

    def test_corrupt_raises_state_corruption(self):
        path = self.store.state_file("alpha")
        self.store.write_atomic(path, "{not json")
        with self.assertRaises(StateCorruption):
            self.store.read_json(path)

    def test_non_object_is_corrupt(self):
        path = self.store.state_file("alpha")
        self.store.write_atomic(path, "[1, 2]")
        with self.assertRaises(StateCorruption):
            self.store.read_json(path)

    def test_heal_deletes_corrupt_file(self):
        path = self.store.state_file("alpha")
        self.store.write_atomic(path, "garbage")
        self.assertIsNone(self.store.read_json_or_heal(path))
        self.assertFalse(os.path.exists(path))


class TestDeleteOwnedFile(RuntimeTestCase):
    def setUp(self):
        super().setUp()
        self.store.ensure_runtime_root()

    def test_deletes_regular_file(self):
        path = self.store.state_file("alpha")
        self.store.write_json(path, {})
        self.store.delete_owned_file(path)
        self.assertFalse(os.path.exists(path))

    def test_missing_file_is_noop(self):
        self.store.delete_owned_file(self.store.state_file("ghost"))

    def test_refuses_outside_root(self):
        outside = os.path.join(self.tmpdir, "outside.json")
        with open(outside, "w") as f:
            f.write("{}")
        with self.assertRaises(SecurityViolation):
            self.store.delete_owned_file(outside)
        self.assertTrue(os.path.exists(outside))

    def test_refuses_directory(self):
        path = self.store.ensure_session_dir("alpha")
        with self.assertRaises(SecurityViolation):
            self.store.delete_owned_file(path)

    def test_refuses_symlink(self):
        target = os.path.join(self.tmpdir, "target.json")
        with open(target, "w") as f:
            f.write("{}")
        link = os.path.join(self.runtime_dir, "link.json")
        os.symlink(target, link)
        with self.assertRaises(SecurityViolation):
            self.store.delete_owned_file(link)
        self.assertTrue(os.path.exists(target))

    def test_refuses_foreign_owner(self):
        path = self.store.state_file("alpha")
        self.store.write_json(path, {})
        other_uid = os.lstat(path).st_uid + 1
        with mock.patch("shared.runtime_store.os.getuid", return_value=other_uid):
            with self.assertRaises(SecurityViolation):
                self.store.delete_owned_file(path)
        self.assertTrue(os.path.exists(path))


if __name__ == "__main__":
    unittest.main()
