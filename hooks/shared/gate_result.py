"""Gate result object returned by every gate check.

A blocked result ends the gate chain; the enforcer prints its message to
stderr prefixed with "BLOCKED:" and exits 2. A non-blocked result with a
message is advisory and only logged.
"""


class GateResult:
    def __init__(self, blocked=False, message="", gate_name="", severity="info", metadata=None):
        self.blocked = blocked
        self.message = message
        self.gate_name = gate_name
        self.severity = severity  # "info", "warn", "error", "critical"
        self.metadata = metadata or {}

    @classmethod
    def allow(cls, gate_name, message="", **metadata):
        return cls(blocked=False, message=message, gate_name=gate_name,
                   severity="warn" if message else "info", metadata=metadata)

    @classmethod
    def block(cls, gate_name, message, severity="error", **metadata):
        return cls(blocked=True, message=message, gate_name=gate_name,
                   severity=severity, metadata=metadata)

    @property
    def is_warning(self):
        """Returns True if this is an advisory warning (not blocking)."""
        return self.severity == "warn" and not self.blocked

    def __repr__(self):
        status = "BLOCKED" if self.blocked else "PASS"
        if self.severity != "info":
            return f"GateResult({status}, {self.gate_name}, severity={self.severity})"
        return f"GateResult({status}, {self.gate_name})"
