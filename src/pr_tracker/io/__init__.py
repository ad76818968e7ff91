"""File-backed persistence for sessions and records."""
