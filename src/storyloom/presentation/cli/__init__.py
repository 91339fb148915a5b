"""Terminal player for story documents."""
