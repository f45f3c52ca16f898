"""SQLite persistence for the encrypted preferences backend."""
