"""API Resilience Implementations.

Contains the retry policy applied to idempotent API calls: exponential
backoff with jitter and classification of transient failures.
"""
