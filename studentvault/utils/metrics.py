"""Prometheus Metrics - Observability for StudentVault

Self-Explanatory: Counters for crypto, auth and record operations.
Why: Decryption failures and login failures should be visible without reading logs.
How: Prometheus client exports /metrics endpoint.

Metrics Categories:
1. Crypto Metrics: encryption_operations, decryption_failures
2. Auth Metrics: auth_attempts, tokens_issued
3. Record Metrics: student_operations
"""

import time
from functools import wraps
from typing import Callable

import structlog
from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    REGISTRY,
)

logger = structlog.get_logger()

# ============================================================================
# CRYPTO METRICS
# ============================================================================

encryption_operations_total = Counter(
    "studentvault_encryption_operations_total",
    "Total field encryption/decryption operations",
    ["tier", "operation"],  # tier: client, server, password
)

decryption_failures_total = Counter(
    "studentvault_decryption_failures_total",
    "Envelopes rejected (malformed, wrong key, tampered)",
    ["tier"],
)

password_hash_duration_seconds = Histogram(
    "studentvault_password_hash_duration_seconds",
    "bcrypt hash/verify latency",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2],
)

# ============================================================================
# AUTH METRICS
# ============================================================================

auth_attempts_total = Counter(
    "studentvault_auth_attempts_total",
    "Login attempts and access guard decisions",
    ["result"],  # login_success, login_failed, token_accepted, token_rejected
)

tokens_issued_total = Counter(
    "studentvault_tokens_issued_total",
    "Session tokens issued",
    ["kind"],  # access, refresh
)

# ============================================================================
# RECORD METRICS
# ============================================================================

student_operations_total = Counter(
    "studentvault_student_operations_total",
    "Student record operations",
    ["operation"],  # register, list, get, update, delete
)

# ============================================================================
# SYSTEM INFO
# ============================================================================

system_info = Info(
    "studentvault_system",
    "StudentVault system information",
)

system_info.info({
    "version": "1.0.0",
    "server_cipher": "aes-256-cbc",
    "password_hash": "bcrypt",
})

# ============================================================================
# DECORATOR UTILITIES
# ============================================================================


def track_hash_time(operation: str):
    """Decorator to track password hash/verify duration"""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                password_hash_duration_seconds.labels(
                    operation=operation
                ).observe(time.time() - start_time)
        return wrapper
    return decorator


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def record_encryption(tier: str, operation: str):
    """Record a field encrypt/decrypt"""
    encryption_operations_total.labels(tier=tier, operation=operation).inc()


def record_decryption_failure(tier: str):
    """Record a rejected envelope"""
    decryption_failures_total.labels(tier=tier).inc()


def record_auth_attempt(result: str):
    auth_attempts_total.labels(result=result).inc()


def record_token_issued(kind: str):
    tokens_issued_total.labels(kind=kind).inc()


def record_student_operation(operation: str):
    student_operations_total.labels(operation=operation).inc()


def get_metrics_text() -> bytes:
    """Get Prometheus metrics in text format

    Returns:
        Metrics in Prometheus exposition format
    """
    return generate_latest(REGISTRY)
