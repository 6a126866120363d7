"""Trend record management, scoring pipeline and collection cycle."""
