"""Semantic search over a single document.

Extracts the document text, splits it into passages, embeds every passage
and the user's query, and prints the passages most similar to the query.
"""

__version__ = "0.1.0"
