"""Core conversion pipeline for md-converter."""
