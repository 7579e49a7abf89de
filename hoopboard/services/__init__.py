"""Scoreboard domain services: share codes and plan limits.

Imported by HTTP routes so transport concerns stay separate from the
rules they enforce.
"""
