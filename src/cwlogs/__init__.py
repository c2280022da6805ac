"""cwlogs: tail CloudWatch log groups and run Logs Insights queries from the CLI."""

__version__ = "0.3.0"
