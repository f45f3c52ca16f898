"""Core types of SecureStore."""
