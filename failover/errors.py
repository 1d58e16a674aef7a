from __future__ import annotations


class FailoverError(Exception):
    pass


class ConfigError(FailoverError):
    """Malformed selector or pool label."""


class StoreError(FailoverError):
    """The cluster state store rejected or could not serve a request."""


class NotFoundError(StoreError):
    pass


class PassAborted(FailoverError):
    """A reconciliation pass could not observe the cluster and was stopped."""
