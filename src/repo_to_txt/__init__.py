"""Flatten a Git repository into a single delimited text file."""

__version__ = "1.1.0"
