"""Loudness measurement and gain calculation."""
