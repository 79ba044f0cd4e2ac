"""
Command-line interface for the world model pipeline.
"""
