"""
Zeami Watcher API Package.

FastAPI REST and WebSocket bridge between the watcher and the UI.
Requires Python 3.11+.
"""

# Import app lazily to avoid circular imports
# Use: from api.main import app
