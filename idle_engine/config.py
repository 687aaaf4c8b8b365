"""
Engine-wide constants for the IdLE Engine.

Retry hard limits, the redaction deny-list and the template root allowlist
live here so every component reads the same values.
"""

# Retry hard limits
RETRY_MAX_ATTEMPTS_LIMIT = 10
RETRY_INITIAL_DELAY_MS_LIMIT = 60000
RETRY_MAX_DELAY_MS_LIMIT = 300000
RETRY_MIN_BACKOFF_FACTOR = 1.0
RETRY_MAX_JITTER_RATIO = 1.0

# Redaction
REDACTION_MARKER = "[REDACTED]"

# Compared after lowercasing and removing "_" and "-"
SENSITIVE_KEYS = frozenset({
    "password",
    "passphrase",
    "pwd",
    "token",
    "secret",
    "credential",
    "credentials",
    "apikey",
    "clientsecret",
    "accesstoken",
    "refreshtoken",
    "idtoken",
    "bearertoken",
    "privatekey",
    "certificatepassword",
    "connectionstring",
    "sastoken",
    "authorization",
})

# Template roots
TEMPLATE_ALLOWED_ROOTS = (
    "Request.Input",
    "Request.DesiredState",
    "Request.IdentityKeys",
    "Request.Changes",
    "Request.LifecycleEvent",
    "Request.CorrelationId",
    "Request.Actor",
)

# Plan export
PLAN_EXPORT_SCHEMA_VERSION = "1.0"
ENGINE_NAME = "IdLE"
