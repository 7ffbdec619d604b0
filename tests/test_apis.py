"""Tests for package and revision API models."""

from datetime import datetime, timezone

import pytest
from pkgplane.apis import (
    ActivationPolicy,
    Condition,
    ConditionStatus,
    ConditionType,
    Configuration,
    ControllerConfigReference,
    DesiredState,
    FunctionRevision,
    Package,
    PackageRevision,
    Provider,
    ProviderRevisionList,
)
from pkgplane.apis.registry import (
    CONFIGURATION,
    FUNCTION,
    PROVIDER,
    get_kind,
    package_kinds,
)
from pkgplane.apis.revisions import revision_columns
from pkgplane.core.errors import ImmutableFieldError


def _revision(name="provider-aws-abc", image="xpkg.example.io/acme/provider-aws:v1", number=1):
    return PROVIDER.new_revision(name, image, number)


class TestPackageModels:
    """Test package records and their wire format."""

    def test_load_camel_case(self):
        provider = Provider.model_validate(
            {
                "apiVersion": "pkg.crossplane.io/v1",
                "kind": "Provider",
                "metadata": {"name": "provider-aws"},
                "spec": {
                    "package": "xpkg.example.io/acme/provider-aws:v1.0.0",
                    "revisionHistoryLimit": 3,
                    "revisionActivationPolicy": "Manual",
                    "packagePullSecrets": [{"name": "regcred"}],
                },
            }
        )

        assert provider.source == "xpkg.example.io/acme/provider-aws:v1.0.0"
        assert provider.revision_history_limit == 3
        assert provider.activation_policy == ActivationPolicy.MANUAL
        assert [s.name for s in provider.package_pull_secrets] == ["regcred"]

    def test_defaults(self):
        provider = PROVIDER.new_package("provider-aws", "acme/provider-aws:v1")

        assert provider.activation_policy == ActivationPolicy.AUTOMATIC
        assert provider.revision_history_limit == 1
        assert provider.current_revision == ""
        assert provider.has_controller is True

    def test_satisfies_package_interface(self):
        for kind in package_kinds():
            assert isinstance(kind.new_package("p", "acme/p:v1"), Package)

    def test_configuration_has_no_controller_config(self):
        config = CONFIGURATION.new_package("platform", "acme/platform:v1")
        config.controller_config_ref = ControllerConfigReference(name="ignored")

        assert config.controller_config_ref is None
        assert config.has_controller is False
        assert isinstance(config, Configuration)

    def test_setters_write_through(self):
        provider = PROVIDER.new_package("provider-aws", "acme/provider-aws:v1")
        provider.source = "acme/provider-aws:v2"
        provider.current_revision = "provider-aws-123"
        provider.controller_config_ref = ControllerConfigReference(name="debug")

        wire = provider.to_wire()
        assert wire["spec"]["package"] == "acme/provider-aws:v2"
        assert wire["spec"]["controllerConfigRef"] == {"name": "debug"}
        assert wire["status"]["currentRevision"] == "provider-aws-123"

    def test_negative_history_limit_rejected(self):
        with pytest.raises(ValueError):
            Provider.model_validate(
                {"metadata": {"name": "p"}, "spec": {"package": "a/b", "revisionHistoryLimit": -1}}
            )


class TestRevisionModels:
    """Test revision records."""

    def test_wire_names(self):
        revision = _revision()
        revision.webhook_tls_secret_name = "provider-aws-abc-webhook-tls"
        revision.ess_tls_secret_name = "provider-aws-abc-ess-tls"
        revision.set_dependency_status(2, 1, 0)

        wire = revision.to_wire()

        assert wire["spec"]["webhookTLSSecretName"] == "provider-aws-abc-webhook-tls"
        assert wire["spec"]["essTLSSecretName"] == "provider-aws-abc-ess-tls"
        assert wire["spec"]["desiredState"] == "Inactive"
        assert wire["status"]["foundDependencies"] == 2
        assert wire["status"]["installedDependencies"] == 1

    def test_satisfies_revision_interface(self):
        for kind in package_kinds():
            assert isinstance(kind.new_revision("r", "acme/p:v1", 1), PackageRevision)

    def test_revision_number_must_be_positive(self):
        with pytest.raises(ValueError):
            PROVIDER.new_revision("r", "acme/p:v1", 0)

    def test_image_is_immutable(self):
        previous = _revision()
        changed = previous.model_copy(deep=True)
        changed.source = "acme/provider-aws:v2"

        with pytest.raises(ImmutableFieldError):
            changed.validate_update(previous)

    def test_revision_number_is_immutable(self):
        previous = _revision()
        changed = previous.model_copy(deep=True)
        changed.revision = 2

        with pytest.raises(ImmutableFieldError):
            changed.validate_update(previous)

    def test_desired_state_is_mutable(self):
        previous = _revision()
        changed = previous.model_copy(deep=True)
        changed.desired_state = DesiredState.ACTIVE

        changed.validate_update(previous)

    def test_endpoint_only_on_functions(self):
        function = FUNCTION.new_revision("fn-abc", "acme/fn:v1", 1)
        function.endpoint = "dns:///fn-abc:9443"
        provider = _revision()
        provider.endpoint = "dns:///provider:9443"

        assert isinstance(function, FunctionRevision)
        assert function.endpoint == "dns:///fn-abc:9443"
        assert provider.endpoint is None

    def test_columns(self):
        revision = _revision()
        revision.set_dependency_status(3, 2, 1)
        revision.set_conditions(
            Condition(type=ConditionType.HEALTHY, status=ConditionStatus.TRUE, reason="x")
        )

        columns = revision_columns(revision)

        assert columns["HEALTHY"] == "True"
        assert columns["REVISION"] == "1"
        assert columns["STATE"] == "Inactive"
        assert columns["DEP-FOUND"] == "3"
        assert columns["DEP-INSTALLED"] == "2"


class TestRevisionList:
    """Test revision list accessors."""

    def test_get_revisions_returns_copies(self):
        revisions = ProviderRevisionList(items=[_revision("a"), _revision("b", number=2)])

        copies = revisions.get_revisions()
        copies[0].desired_state = DesiredState.ACTIVE

        assert [r.name for r in copies] == ["a", "b"]
        assert revisions.items[0].desired_state == DesiredState.INACTIVE


class TestConditions:
    """Test condition bookkeeping."""

    def test_unset_condition_is_unknown(self):
        revision = _revision()

        assert revision.get_condition(ConditionType.HEALTHY).status == ConditionStatus.UNKNOWN

    def test_one_condition_per_type(self):
        revision = _revision()
        revision.set_conditions(
            Condition(type=ConditionType.HEALTHY, status=ConditionStatus.FALSE, reason="a")
        )
        revision.set_conditions(
            Condition(type=ConditionType.HEALTHY, status=ConditionStatus.TRUE, reason="b")
        )

        assert len(revision.status.conditions) == 1
        assert revision.get_condition(ConditionType.HEALTHY).reason == "b"

    def test_unchanged_condition_keeps_timestamp(self):
        then = datetime(2024, 1, 1, tzinfo=timezone.utc)
        revision = _revision()
        revision.set_conditions(
            Condition(
                type=ConditionType.HEALTHY,
                status=ConditionStatus.TRUE,
                reason="r",
                last_transition_time=then,
            )
        )
        revision.set_conditions(
            Condition(type=ConditionType.HEALTHY, status=ConditionStatus.TRUE, reason="r")
        )

        assert revision.get_condition(ConditionType.HEALTHY).last_transition_time == then

    def test_same_status_new_reason_keeps_timestamp(self):
        then = datetime(2024, 1, 1, tzinfo=timezone.utc)
        revision = _revision()
        revision.set_conditions(
            Condition(
                type=ConditionType.HEALTHY,
                status=ConditionStatus.TRUE,
                reason="a",
                last_transition_time=then,
            )
        )
        revision.set_conditions(
            Condition(type=ConditionType.HEALTHY, status=ConditionStatus.TRUE, reason="b")
        )

        condition = revision.get_condition(ConditionType.HEALTHY)
        assert condition.reason == "b"
        assert condition.last_transition_time == then


class TestRegistry:
    """Test package kind lookup."""

    def test_lookup_by_package_or_revision_kind(self):
        assert get_kind("Provider") is PROVIDER
        assert get_kind("ConfigurationRevision") is CONFIGURATION
        assert get_kind("Function") is FUNCTION

    def test_unknown_kind(self):
        with pytest.raises(KeyError):
            get_kind("Composition")

    def test_controllers(self):
        assert PROVIDER.has_controller
        assert FUNCTION.has_controller
        assert not CONFIGURATION.has_controller
