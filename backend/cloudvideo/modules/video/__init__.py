"""Video record module.

Persisted state of each video and its processing lifecycle.
"""
