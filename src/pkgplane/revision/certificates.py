"""
Names of the secrets holding a revision's TLS material.

Certificates are currently scoped per revision: every revision records the
secret names it uses in its spec. Reconcilers only talk to
:class:`CertificateNamer`, so an entity-scoped issuer can replace
:class:`RevisionScopedCertificates` without touching them.
"""

from __future__ import annotations

from typing import Protocol

from pkgplane.apis.interfaces import Package, PackageRevision
from pkgplane.xpkg.identity import MAX_NAME_LENGTH


def _secret_name(owner: str, suffix: str) -> str:
    return f"{owner[: MAX_NAME_LENGTH - len(suffix) - 1].rstrip('-')}-{suffix}"


class CertificateNamer(Protocol):
    def server_secret(self, package: Package) -> str | None:
        """Secret for the controller's TLS server certificate, if it has one."""
        ...

    def client_secret(self, package: Package) -> str | None:
        ...

    def webhook_secret(self, revision: PackageRevision) -> str:
        ...

    def ess_secret(self, revision: PackageRevision) -> str:
        ...


class RevisionScopedCertificates:
    """Server and client secrets follow the package; the rest follow the revision."""

    def server_secret(self, package: Package) -> str | None:
        return _secret_name(package.name, "tls-server") if package.has_controller else None

    def client_secret(self, package: Package) -> str | None:
        return _secret_name(package.name, "tls-client") if package.has_controller else None

    def webhook_secret(self, revision: PackageRevision) -> str:
        return _secret_name(revision.name, "webhook-tls")

    def ess_secret(self, revision: PackageRevision) -> str:
        return _secret_name(revision.name, "ess-tls")


def assign_package_secrets(
    namer: CertificateNamer, package: Package, revision: PackageRevision
) -> None:
    """Copy the package-level TLS secret names onto ``revision``."""
    revision.tls_server_secret_name = namer.server_secret(package)
    revision.tls_client_secret_name = namer.client_secret(package)


def assign_content_secrets(
    namer: CertificateNamer,
    revision: PackageRevision,
    *,
    webhook: bool,
    ess: bool,
) -> None:
    """Set or clear the per-revision secret names the package content asks for."""
    revision.webhook_tls_secret_name = namer.webhook_secret(revision) if webhook else None
    revision.ess_tls_secret_name = namer.ess_secret(revision) if ess else None
