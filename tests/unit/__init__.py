"""
Unit tests for the retry processor.

No external services: Redis and Celery are mocked, schedulers run on the
test event loop.
"""
