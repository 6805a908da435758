"""
JSON schemas for configuration validation.
"""

SERVICE_SCHEMA = {
    "type": "object",
    "properties": {
        "base_url": {"type": "string", "pattern": "^https?://"},
        "request_timeout": {"type": "number", "exclusiveMinimum": 0},
        "auth_token": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}

POLLING_SCHEMA = {
    "type": "object",
    "properties": {
        "initial_delay": {"type": "number", "minimum": 0},
        "interval": {"type": "number", "minimum": 0},
        "max_interval": {"type": ["number", "null"], "minimum": 0},
        "backoff_factor": {"type": "number", "minimum": 1.0},
        "max_poll_duration": {"type": ["number", "null"], "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

REGISTRY_SCHEMA = {
    "type": "object",
    "properties": {
        "backend": {"type": "string", "enum": ["memory", "file", "redis"]},
        "path": {"type": "string"},
        "redis_url": {"type": "string"},
        "namespace": {"type": "string", "minLength": 1},
        "fallback_display_name": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "service": SERVICE_SCHEMA,
        "polling": POLLING_SCHEMA,
        "registry": REGISTRY_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": False,
}

__all__ = [
    "SERVICE_SCHEMA",
    "POLLING_SCHEMA",
    "REGISTRY_SCHEMA",
    "LOGGING_SCHEMA",
    "CONFIG_SCHEMA",
]
