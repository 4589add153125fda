"""Runtime services: context propagation, redaction, resilience, metrics, health and helpers.

Submodules are imported directly (tracelog.runtime.context, tracelog.runtime.health, ...);
several of them depend on tracelog.loggers, which itself builds on the context store.
"""
