"""Funda acquisition strategies and parsers."""
