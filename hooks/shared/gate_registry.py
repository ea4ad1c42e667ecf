"""Canonical gate module registry: single source of truth.

Order matters: later gates assume earlier ones validated the command's
structure. The runtime guard runs before anything touches state, and the
robot-only check runs before spawn admission so a malformed ntm command is
rejected before the global index can change. The first block ends the chain.
"""

GATE_MODULES = [
    "gates.gate_01_tui_launch",
    "gates.gate_02_runtime_guard",
    "gates.gate_03_robot_only",
    "gates.gate_04_spawn_admission",
    "gates.gate_05_inline_payload",
    "gates.gate_06_poll_interval",
    "gates.gate_07_capture_marker",
    "gates.gate_08_capture_before_kill",
]

