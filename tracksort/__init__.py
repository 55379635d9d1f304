"""tracksort — custom display order for GitHub issues.

Keeps a persisted identity -> ordering-key map alongside an issue tracker
that has no notion of manual ordering, reconciles freshly fetched issues
against it, and pushes change events to connected clients.
"""

__version__ = "0.1.0"
