"""
Batch API Engine

Asynchronous job protocol against the OpenAI Batch API:
1. JobSubmitter - JSONL upload + batch creation, correlation ids
2. JobPoller - status queries and per-correlation-id result lookup
3. PollOrchestrator - bounded-wait polling (Ready / Pending)
"""
