"""HTTP API for StoreLink."""
