"""StoreLink: seller storefront connections, sessions and webhook intake."""

__version__ = "0.1.0"
