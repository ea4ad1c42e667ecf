#!/usr/bin/env python3
"""ntm-orchestrator Enforcer

Central dispatcher for the orchestration gates. Runs as a Claude Code hook
on PreToolUse events. Checks gates BEFORE a Bash command executes and can
block via sys.exit(2) (Claude Code's mechanical block exit code), with the
reason on stderr.

Each invocation is a fresh process: everything it knows about the NTM
session comes from the private runtime directory (see shared/runtime_store.py)
and from tmux.

Failure policy:
  - SecurityViolation / ValidationError from a gate  -> block (fail-closed)
  - any other gate crash                              -> skip gate (fail-open)
  - malformed hook input                              -> allow (fail-open)

Usage (called by Claude Code hooks):
  echo '{"session_id":"abc","tool_name":"Bash","tool_input":{"command":"ntm kill proj"}}' | python enforcer.py
"""

import importlib
import json
import logging
import os
import sys

# Add parent to path for shared imports
sys.path.insert(0, os.path.dirname(__file__))
from shared.audit_log import log_gate_decision
from shared.config import configure_logging
from shared.errors import PolicyViolation, SecurityViolation, ValidationError
from shared.gate_context import GateContext
from shared.gate_helpers import extract_command, is_bash_tool, safe_tool_input
from shared.gate_registry import GATE_MODULES
from shared.gate_result import GateResult
from shared.tmux_oracle import is_spawned_agent

logger = logging.getLogger("ntm_orch.enforcer")

EXIT_ALLOW = 0
EXIT_BLOCK = 2

_loaded_gates = {}  # module_name -> module (cached after first load)


def _ensure_gates_loaded():
    """Import every gate module once. A gate that fails to import is skipped."""
    if _loaded_gates:
        return
    for module_name in GATE_MODULES:
        try:
            mod = importlib.import_module(module_name)
        except ImportError as e:
            logger.error("Gate '%s' failed to load: %s", module_name, e)
            continue
        if hasattr(mod, "check"):
            _loaded_gates[module_name] = mod


def loaded_gates():
    """Loaded gate modules in priority order."""
    _ensure_gates_loaded()
    return [_loaded_gates[name] for name in GATE_MODULES if name in _loaded_gates]


def handle_pre_tool_use(tool_name, tool_input, ctx):
    """Run the gate chain. Returns the blocking GateResult, or None to allow."""
    if not is_bash_tool(tool_name):
        return None
    if not extract_command(tool_input).strip():
        return None

    for gate in loaded_gates():
        gate_label = getattr(gate, "GATE_NAME", gate.__name__)
        try:
            result = gate.check(tool_name, tool_input, ctx, event_type="PreToolUse")
        except (SecurityViolation, ValidationError) as e:
            log_gate_decision(gate_label, tool_name, "block", f"fatal: {e}", ctx.session_id,
                              severity="critical")
            return GateResult.block(gate_label, str(e), severity="critical")
        except PolicyViolation as e:
            message = f"{e}\n\n{e.remediation}" if e.remediation else str(e)
            log_gate_decision(gate_label, tool_name, "block", message, ctx.session_id, severity="error")
            return GateResult.block(gate_label, message)
        except Exception as e:
            log_gate_decision(gate_label, tool_name, "crash", f"crash: {e}", ctx.session_id,
                              severity="warn")
            logger.warning("Gate error in %s (skipped): %s", gate_label, e)
            continue

        if result.blocked:
            log_gate_decision(gate_label, tool_name, "block", result.message, ctx.session_id,
                              severity=result.severity)
            return result
        if result.is_warning:
            log_gate_decision(gate_label, tool_name, "warn", result.message, ctx.session_id,
                              severity="warn")
        else:
            log_gate_decision(gate_label, tool_name, "pass", "", ctx.session_id)
    return None


def read_hook_input(stream=None):
    """Parse the hook payload. Returns None for malformed or non-object input."""
    try:
        data = json.load(stream or sys.stdin)
    except (ValueError, OSError):
        return None
    return data if isinstance(data, dict) else None


def block(message):
    print(f"BLOCKED: {message}", file=sys.stderr)
    sys.exit(EXIT_BLOCK)


def main():
    configure_logging()
    data = read_hook_input()
    if data is None:
        sys.exit(EXIT_ALLOW)

    ctx = GateContext(session_id=str(data.get("session_id") or "main"))
    if is_spawned_agent(ctx.oracle):
        sys.exit(EXIT_ALLOW)

    result = handle_pre_tool_use(
        data.get("tool_name", ""),
        safe_tool_input(data.get("tool_input")),
        ctx,
    )
    if result is not None and result.blocked:
        block(result.message)
    sys.exit(EXIT_ALLOW)


if __name__ == "__main__":
    try:
        main()
    except SystemExit:
        raise
    except Exception as e:
        # Fail-open: a bug in the gate must never wedge the host workflow
        print(f"[ENFORCER] Warning: internal error, allowing: {e}", file=sys.stderr)
        sys.exit(EXIT_ALLOW)
