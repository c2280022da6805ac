"""Adapters binding the core ports to boto3, SQLite and the terminal."""
