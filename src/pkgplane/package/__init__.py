"""Package reconciliation: revision planning, activation and retention."""

from pkgplane.package.planner import (
    PROPAGATED_FIELDS,
    REASON_ACTIVE,
    REASON_NO_ACTIVE,
    REASON_TRANSITIONING,
    RevisionPlan,
    identifier_of,
    plan_revisions,
)
from pkgplane.package.reconciler import (
    FINALIZER,
    REASON_CREATE_FAILED,
    REASON_DELETE_FAILED,
    REASON_RESOLVE_FAILED,
    REASON_UPDATE_FAILED,
    PackageReconciler,
)

__all__ = [
    "FINALIZER",
    "PROPAGATED_FIELDS",
    "REASON_ACTIVE",
    "REASON_CREATE_FAILED",
    "REASON_DELETE_FAILED",
    "REASON_NO_ACTIVE",
    "REASON_RESOLVE_FAILED",
    "REASON_TRANSITIONING",
    "REASON_UPDATE_FAILED",
    "PackageReconciler",
    "RevisionPlan",
    "identifier_of",
    "plan_revisions",
]
