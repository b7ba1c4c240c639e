"""
Command-line interface for md-converter.
"""
