"""
Analysis core: structural extraction, pattern and relationship detection,
feature embeddings, the SQLite store and similarity search.
"""
