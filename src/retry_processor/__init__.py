"""
Retry Processor for request/response message pipelines.

Sits between a request-issuing stage and a response-consuming stage and
handles envelopes describing failed remote calls:
- NEW envelopes enter the retry flow (trace id, deadline, first backoff)
- RETRYING envelopes are re-emitted after an exponential backoff
- EXHAUSTED envelopes are turned into a Bad Gateway diagnostic report

Architecture: stateless classifier + delay scheduler (memory/Redis/Celery)
+ Redis list transport, with a FastAPI operational surface.
"""

__version__ = "0.1.0"
