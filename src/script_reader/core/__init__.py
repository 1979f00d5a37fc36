"""
Core Infrastructure.

    - config.py: Settings loading and validation
    - errors.py: Error codes and exception hierarchy
    - logging/: Structured logging with numeric levels
"""
