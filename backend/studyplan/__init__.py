"""Adaptive study-plan replanning backend."""
