"""Command-line interface for StoreLink."""
