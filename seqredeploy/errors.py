from __future__ import annotations


class RedeployError(Exception):
    """Base class for everything that aborts a redeploy run."""


class NotFound(RedeployError):
    """A service, gateway or container name/id has no match in the cluster."""


class UnsupportedCheck(RedeployError):
    """The container's health-check definition is not of the form ``GET <path>``."""


class Timeout(RedeployError):
    """A bounded wait (health gate or lifecycle watch) ran out of time."""


class Transport(RedeployError):
    """Cluster API or event stream I/O failed."""


class Unauthorized(RedeployError):
    """Request-level authorization failure; only raised at the HTTP boundary."""
