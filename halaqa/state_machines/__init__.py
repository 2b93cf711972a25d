"""Transition engines for assignments, homework and targets.

Each engine is a set of pure functions over the current state; callers own
persistence, timestamps and side effects.
"""
