"""Services orchestrating permission checks, state machines and persistence."""
