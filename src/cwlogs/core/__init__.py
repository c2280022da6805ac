"""Core domain package for cwlogs.

Core contains the tailing engine and the query state machine without any AWS
or storage-specific code, keeping the behaviour testable with fakes.
"""
