"""Application-level exception types.

``DashboardError`` subclasses are the dashboard's own failure taxonomy. Their
messages are written for the operator and are safe to forward; the global
handler returns ``{"detail": str(exc), "kind": exc.kind}`` with the class
status code, and HTML routes render the same message on the error page.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for failures surfaced to the caller as-is."""

    kind = "error"
    status_code = 500


class InvalidTargetError(DashboardError):
    """The target key does not name a configured file."""

    kind = "invalid-target"
    status_code = 400


class SystemLockedError(DashboardError):
    """Editing is disabled by an administrator."""

    kind = "forbidden"
    status_code = 403


class RemoteNotFoundError(DashboardError):
    """The repository, path or version does not exist on the remote store."""

    kind = "not-found"
    status_code = 404


class VersionConflictError(DashboardError):
    """The presented version tag is no longer the file's current one."""

    kind = "version-conflict"
    status_code = 409


class RemoteUnavailableError(DashboardError):
    """Network, authentication or server-side failure talking to the remote store."""

    kind = "remote-unavailable"
    status_code = 502


class UnauthorizedError(DashboardError):
    """Missing or invalid admin credential."""

    kind = "unauthorized"
    status_code = 401


class DeployError(DashboardError):
    """The deployment webhook did not accept the trigger."""

    kind = "deploy-failed"
    status_code = 502


class DeployNotConfiguredError(DeployError):
    kind = "deploy-not-configured"
    status_code = 500
