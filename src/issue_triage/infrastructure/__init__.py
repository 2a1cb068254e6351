"""
Infrastructure Layer
====================

Adapters for the LLM provider, the Milvus corpus and the Redis cache.
"""
