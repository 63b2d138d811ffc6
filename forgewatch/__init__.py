"""Forgejo Actions monitor: discovers workflow runs across repositories and aggregates them into jobs."""
