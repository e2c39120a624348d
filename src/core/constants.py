"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Security and redaction
REDACTED = "[REDACTED]"

# Extra time granted to the listener after the drain bound elapses, so that
# cancelled connections can be closed before the process gives up on it.
SHUTDOWN_GRACE_SECONDS = 1.0
