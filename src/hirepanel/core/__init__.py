"""Shared contracts used across HirePanel features."""
