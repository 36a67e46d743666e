"""Command-line interface for ticket-runner."""
