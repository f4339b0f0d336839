"""SQLite persistence for war room sessions."""
from .schema import get_connection, initialize_schema
from .store import SessionStore
