"""Configuration for Activity Overlay."""
