"""Matchmaking domain services: queue, ranking, pairing and rounds.

This package holds the matchmaking core that HTTP routes and socket
handlers call into, keeping transport concerns separated from queue and
match state transitions.
"""
