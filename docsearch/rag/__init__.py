"""Retrieval pipeline components.

This package contains modules for:
- PDF and plain text extraction
- Word-boundary document chunking
- Embedding generation
- Cosine similarity ranking
- Pipeline orchestration
"""
