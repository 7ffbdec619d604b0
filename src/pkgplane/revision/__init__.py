"""Package revision reconciliation and the collaborators it drives."""

from pkgplane.revision.certificates import (
    CertificateNamer,
    RevisionScopedCertificates,
    assign_content_secrets,
    assign_package_secrets,
)
from pkgplane.revision.establisher import InstalledObject, MemoryEstablisher, ObjectEstablisher
from pkgplane.revision.reconciler import (
    FINALIZER,
    REASON_HEALTHY,
    REASON_INACTIVE,
    REASON_INCOMPATIBLE,
    REASON_INVALID_CONTENTS,
    REASON_UNHEALTHY,
    RevisionPhase,
    RevisionReconciler,
    is_ready,
)
from pkgplane.revision.runtime import ControllerRuntime, MemoryControllerRuntime, WorkloadStatus

__all__ = [
    "FINALIZER",
    "REASON_HEALTHY",
    "REASON_INACTIVE",
    "REASON_INCOMPATIBLE",
    "REASON_INVALID_CONTENTS",
    "REASON_UNHEALTHY",
    "CertificateNamer",
    "ControllerRuntime",
    "InstalledObject",
    "MemoryControllerRuntime",
    "MemoryEstablisher",
    "ObjectEstablisher",
    "RevisionPhase",
    "RevisionReconciler",
    "RevisionScopedCertificates",
    "WorkloadStatus",
    "assign_content_secrets",
    "assign_package_secrets",
    "is_ready",
]
