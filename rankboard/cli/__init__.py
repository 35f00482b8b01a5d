"""Command-line tools for Rankboard."""
