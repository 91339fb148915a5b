"""Domain definitions and runtime state."""
