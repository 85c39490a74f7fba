"""Utility helpers for Activity Overlay."""
