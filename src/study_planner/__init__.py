"""Adaptive study planner."""
