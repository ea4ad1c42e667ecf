#!/usr/bin/env python3
"""SessionRegistry: admission exclusivity, stale reconciliation, release."""

import os
import unittest

from tests.harness import T0, RuntimeTestCase, read_json, write_fake_tmux, write_json

from shared.errors import ValidationError
from shared.gate_helpers import iso_to_epoch
from shared.session_registry import SessionRegistry
from shared.tmux_oracle import TmuxOracle


class TestAdmission(RuntimeTestCase):
    def setUp(self):
        super().setUp()
        self.registry = SessionRegistry(self.store, self.oracle)

    def test_admit_writes_state_and_index(self):
        admission = self.registry.admit("alpha", now=T0)
        self.assertTrue(admission.admitted)
        self.assertEqual(read_json(self.store.global_index), {"session": "alpha"})
        state = read_json(self.store.state_file("alpha"))
        self.assertEqual(state["session"], "alpha")
        self.assertEqual(state["pid"], os.getpid())
        self.assertAlmostEqual(iso_to_epoch(state["spawned_at"]), T0, places=3)

    def test_admit_sanitizes_name(self):
        admission = self.registry.admit("my proj/1", now=T0)
        self.assertEqual(admission.session, "my_proj_1")
        self.assertEqual(self.registry.active_session(), "my_proj_1")

    def test_empty_name_is_validation_error(self):
        with self.assertRaises(ValidationError):
            self.registry.admit("   ", now=T0)
        self.assertFalse(os.path.exists(self.store.global_index))

    def test_second_session_refused_while_first_is_live(self):
        self.registry.admit("alpha", now=T0)
        self.oracle.live.add("alpha")
        admission = self.registry.admit("beta", now=T0 + 60)
        self.assertFalse(admission.admitted)
        self.assertEqual(admission.conflicting_session, "alpha")
        self.assertEqual(read_json(self.store.global_index), {"session": "alpha"})
        self.assertFalse(os.path.exists(self.store.state_file("beta")))

    def test_second_session_admitted_when_first_is_dead(self):
        self.registry.admit("alpha", now=T0)
        admission = self.registry.admit("beta", now=T0 + 60)
        self.assertTrue(admission.admitted)
        self.assertEqual(admission.stale_session_cleared, "alpha")
        self.assertEqual(read_json(self.store.global_index), {"session": "beta"})
        self.assertFalse(os.path.exists(self.store.state_file("alpha")))
        self.assertIn("alpha", self.oracle.probes)

    def test_same_session_readmitted_without_probe(self):
        self.registry.admit("alpha", now=T0)
        self.oracle.live.add("alpha")
        admission = self.registry.admit("alpha", now=T0 + 30)
        self.assertTrue(admission.admitted)
        self.assertEqual(self.oracle.probes, [])
        self.assertAlmostEqual(self.registry.spawned_at("alpha"), T0 + 30, places=3)

    def test_corrupt_index_treated_as_absent(self):
        self.store.ensure_runtime_root()
        with open(self.store.global_index, "w") as f:
            f.write("{broken")
        admission = self.registry.admit("alpha", now=T0)
        self.assertTrue(admission.admitted)
        self.assertEqual(read_json(self.store.global_index), {"session": "alpha"})

    def test_index_with_unprobeable_session_is_replaced(self):
        write_json(self.store.global_index, {"session": "a\x00b"})
        registry = SessionRegistry(self.store, TmuxOracle(write_fake_tmux(self.tmpdir, live=["alpha"])))
        admission = registry.admit("beta", now=T0)
        self.assertTrue(admission.admitted)
        self.assertEqual(read_json(self.store.global_index), {"session": "beta"})


class TestActiveSession(RuntimeTestCase):
    def setUp(self):
        super().setUp()
        self.registry = SessionRegistry(self.store, self.oracle)

    def test_no_index(self):
        self.assertIsNone(self.registry.active_session())

    def test_corrupt_index_removed(self):
        self.store.ensure_runtime_root()
        with open(self.store.global_index, "w") as f:
            f.write("not json")
        self.assertIsNone(self.registry.active_session())
        self.assertFalse(os.path.exists(self.store.global_index))

    def test_index_without_session_removed(self):
        write_json(self.store.global_index, {"session": ""})
        self.assertIsNone(self.registry.active_session())
        self.assertFalse(os.path.exists(self.store.global_index))


class TestRelease(RuntimeTestCase):
    def setUp(self):
        super().setUp()
        self.registry = SessionRegistry(self.store, self.oracle)

    def test_release_removes_all_session_files_and_index(self):
        self.registry.admit("alpha", now=T0)
        write_json(self.store.poll_file("alpha"), {"last_poll_ms": {"alpha|status": 1}})
        write_json(self.store.marker_file("alpha"), {"session": "alpha"})
        self.registry.release("alpha")
        for path in (self.store.state_file("alpha"), self.store.poll_file("alpha"),
                     self.store.marker_file("alpha"), self.store.global_index):
            self.assertFalse(os.path.exists(path), path)

    def test_release_keeps_index_that_moved_to_another_session(self):
        self.registry.admit("alpha", now=T0)
        write_json(self.store.global_index, {"session": "beta"})
        self.registry.release("alpha")
        self.assertEqual(read_json(self.store.global_index), {"session": "beta"})
        self.assertFalse(os.path.exists(self.store.state_file("alpha")))

    def test_release_of_unknown_session_is_harmless(self):
        self.registry.release("ghost")
        self.assertIsNone(self.registry.active_session())


class TestSpawnedAt(RuntimeTestCase):
    def test_unknown_and_corrupt(self):
        registry = SessionRegistry(self.store, self.oracle)
        self.assertIsNone(registry.spawned_at("alpha"))
        write_json(self.store.state_file("alpha"), {"spawned_at": "yesterday"})
        self.assertIsNone(registry.spawned_at("alpha"))


if __name__ == "__main__":
    unittest.main()
