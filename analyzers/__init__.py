"""Cross-activity alignment."""
