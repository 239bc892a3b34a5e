"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from storelink.api.routes import auth, push, store_configs, stores, webhooks

__all__ = [
    "auth",
    "push",
    "store_configs",
    "stores",
    "webhooks",
]
