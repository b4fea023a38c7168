"""Rate limiting adapters.

The limiter interface lives in ``base``; ``in_memory`` provides the
process-local sliding-window implementation used by the API.
"""
