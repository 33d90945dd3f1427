"""
Utilities Package for the Tubely backend.

file_validator:
    Asset kinds, media type allow-lists and extension lookup.

security:
    Random storage key generation.

logger:
    Structured logging configuration and context-enriched loggers.
"""
