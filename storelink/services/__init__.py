"""Service layer: sessions, credentials, store registry, webhooks and pushes."""
