"""Vector store module for the documentation search index.

Provides heading-aware chunking with content-addressed IDs, index diffing,
batched upserts with retry, and the async Pinecone data-plane client.
"""
