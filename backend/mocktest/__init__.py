"""Mock test generation and attempt engine."""
