"""Utility helpers for the neighborhood pipeline."""
