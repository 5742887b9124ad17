"""API Resilience Implementations.

Contains the quota registry and the pacing engine that spaces requests so
the platform's per-window quotas are never exceeded.
Bounded Context: API Resilience
"""
