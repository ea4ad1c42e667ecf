"""Gate decision trail for the ntm-orchestrator hooks.

Every gate outcome (pass, block, warn, crash) goes through
log_gate_decision(). Records are emitted on the "ntm_orch.audit" logger as a
single JSON line, so they surface on stderr when NTM_ORCH_LOG_LEVEL=INFO and
stay silent otherwise. Nothing is written to disk: hook state must not
outlive the active session.

Never raises.
"""

import json
import logging
from datetime import datetime, timezone

logger = logging.getLogger("ntm_orch.audit")

_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# Blocks are routine gate output, logged below WARNING
_DECISION_LEVEL = {
    "pass": logging.DEBUG,
    "block": logging.INFO,
    "warn": logging.INFO,
}


def _decision_record(gate_name, tool_name, decision, reason, session_id, severity):
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "gate": gate_name,
        "tool": tool_name,
        "decision": decision,
        "reason": reason,
        "session_id": session_id,
        "severity": severity,
    }


def log_gate_decision(gate_name, tool_name, decision, reason, session_id="", severity="info"):
    """Emit one structured gate decision record.

    Args:
        gate_name: Name of the gate (e.g. "GATE 8: CAPTURE BEFORE KILL").
        tool_name: The tool being checked (always "Bash" today).
        decision: One of "pass", "block", "warn", or "crash".
        reason: Human-readable explanation of the decision.
        session_id: Claude Code session id for correlation.
        severity: "info", "warn", "error", or "critical".
    """
    try:
        record = _decision_record(gate_name, tool_name, decision, reason, session_id, severity)
        level = _DECISION_LEVEL.get(decision, _LEVELS.get(severity, logging.WARNING))
        logger.log(level, "%s", json.dumps(record, sort_keys=True))
    except Exception:
        pass  # Audit logging must never break enforcement
