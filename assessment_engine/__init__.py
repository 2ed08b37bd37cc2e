"""
Inclusive adaptive assessment engine.

Runs diagnostic question sessions with real-time difficulty adjustment,
flags learning-difficulty patterns as heuristic signals and ranks lessons for
the student. Persistence, HTTP and content providers belong to the caller.
"""

__version__ = "1.0.0"
