"""Connector exceptions."""


class ConnectorError(Exception):
    """Raised when a connector cannot run a query."""
    pass
