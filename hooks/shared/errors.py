"""Exception taxonomy for the ntm-orchestrator hooks.

Two handling strategies hang off this module:
  - SecurityViolation and ValidationError are fatal for the operation that
    raised them. The enforcer turns them into a block.
  - StateCorruption and ReconciliationFailure are self-healing. Callers treat
    the record as absent / the session as not live and carry on.

PolicyViolation is raised by CaptureGuard.require_capture() when a kill is
refused; gate 8 turns it into a blocked GateResult. A PolicyViolation that
escapes a gate is blocked by the enforcer, with its remediation appended to
the message.
"""


class OrchestratorError(Exception):
    """Base class for every error raised by the hook modules."""
    pass


class SecurityViolation(OrchestratorError):
    """Runtime storage is unsafe: wrong owner/mode, symlink, or path escape."""
    pass


class ValidationError(OrchestratorError):
    """A session identifier was empty or invalid after sanitization."""
    pass


class PolicyViolation(OrchestratorError):
    """A gate rule matched a blocking condition."""

    def __init__(self, message, remediation=""):
        super().__init__(message)
        self.remediation = remediation


class StateCorruption(OrchestratorError):
    """A persisted record could not be read or parsed."""

    def __init__(self, path, reason=""):
        super().__init__(f"Corrupt state file {path}: {reason}" if reason else f"Corrupt state file {path}")
        self.path = path


class ReconciliationFailure(OrchestratorError):
    """The tmux liveness query failed, timed out, or tmux is missing."""
    pass
