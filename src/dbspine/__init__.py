"""
db-spine - incremental traversal of relational sources into documents.

Pages through a database query in bounded batches, turns each row into a
document with a primary-key-derived id, and reconciles consumer
checkpoints so documents survive restarts with at-least-once delivery.
"""

__version__ = "0.1.0"
