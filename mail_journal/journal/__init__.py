"""Journal core: entries, scheduling, reply processing and the main loop."""
