"""Utility helpers for LinkGuard."""
