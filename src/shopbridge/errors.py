"""Exceptions raised at click time by the request channel client."""

from __future__ import annotations


class ShopBridgeError(Exception):
    pass


class NoQueryFound(ShopBridgeError):
    """Every query-resolution strategy produced empty text."""


class BackendError(ShopBridgeError):
    """The backend reported an error or the channel could not be opened."""


class MalformedComplete(ShopBridgeError):
    """A complete status arrived without a usable payload."""
