"""
Integration tests for the retry processor.

Require Redis on localhost:6379 (marked with @pytest.mark.integration,
skipped when Redis is not reachable).
"""
