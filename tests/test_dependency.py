"""Tests for dependency status tracking and resolution."""

import pytest
from pkgplane.apis import (
    CONFIGURATION,
    PROVIDER,
    ConditionStatus,
    Configuration,
    Provider,
    PullPolicy,
)
from pkgplane.core.errors import PlatformConstraintError
from pkgplane.dependency import (
    SKIPPED,
    DependencyResolver,
    DependencyStatus,
    DependencyStatusTracker,
    installed_version,
)
from pkgplane.dependency.status import (
    REASON_DEPENDENCIES_INVALID,
    REASON_DEPENDENCIES_PENDING,
    REASON_DEPENDENCIES_SATISFIED,
    REASON_DEPENDENCIES_SKIPPED,
)
from pkgplane.xpkg import parse_package

REGISTRY = "xpkg.example.io"
AWS = f"{REGISTRY}/acme/provider-aws"
GCP = f"{REGISTRY}/acme/provider-gcp"
DIGEST = "sha256:" + "cd" * 32


class TestDependencyStatus:
    """Test the counter triple."""

    def test_pending(self):
        status = DependencyStatus(found=3, installed=1, invalid=1)

        assert status.pending == 1
        assert not status.satisfied

    def test_satisfied(self):
        assert DependencyStatus(2, 2, 0).satisfied
        assert SKIPPED.satisfied

    @pytest.mark.parametrize("found,installed,invalid", [(1, 2, 0), (1, 0, 2), (-1, 0, 0)])
    def test_invariants_enforced(self, found, installed, invalid):
        with pytest.raises(ValueError):
            DependencyStatus(found, installed, invalid)

    def test_round_trip_through_revision(self):
        revision = PROVIDER.new_revision("r", "acme/p:v1", 1)
        DependencyStatus(3, 2, 1).apply_to(revision)

        assert revision.get_dependency_status() == (3, 2, 1)
        assert DependencyStatus.of(revision) == DependencyStatus(3, 2, 1)


class TestDependencyStatusTracker:
    """Test per-pass accumulation."""

    def test_all_installed(self):
        tracker = DependencyStatusTracker()
        tracker.record_installed("a")
        tracker.record_installed("b")

        assert tracker.status() == DependencyStatus(2, 2, 0)
        assert tracker.condition().status == ConditionStatus.TRUE
        assert tracker.condition().reason == REASON_DEPENDENCIES_SATISFIED

    def test_pending(self):
        tracker = DependencyStatusTracker()
        tracker.record_installed("a")
        tracker.record_pending("b")

        assert tracker.status() == DependencyStatus(2, 1, 0)
        assert tracker.condition().reason == REASON_DEPENDENCIES_PENDING

    def test_invalid_wins(self):
        tracker = DependencyStatusTracker()
        tracker.record_pending("a")
        tracker.record_invalid("b", "no version satisfies >=v9")

        condition = tracker.condition()
        assert tracker.status() == DependencyStatus(2, 0, 1)
        assert condition.status == ConditionStatus.FALSE
        assert condition.reason == REASON_DEPENDENCIES_INVALID
        assert "b: no version satisfies >=v9" in condition.message


@pytest.fixture
def resolver(store, fetcher, settings):
    return DependencyResolver(store, fetcher, settings)


@pytest.fixture
def revision():
    return CONFIGURATION.new_revision("platform-abc", "acme/platform:v1", 1)


def _content(make_package_yaml, *depends_on, crossplane=None):
    return parse_package(
        make_package_yaml(
            "platform",
            "Configuration",
            depends_on=list(depends_on),
            crossplane=crossplane,
        )
    )


class TestResolve:
    """Test resolution against installed packages."""

    @pytest.mark.asyncio
    async def test_no_dependencies(self, resolver, revision, make_package_yaml):
        resolution = await resolver.resolve(revision, _content(make_package_yaml))

        assert resolution.status == DependencyStatus(0, 0, 0)
        assert resolution.condition.status == ConditionStatus.TRUE

    @pytest.mark.asyncio
    async def test_installed_and_satisfied(self, store, resolver, revision, make_package_yaml):
        await store.create(PROVIDER.new_package("provider-aws", f"{AWS}:v1.2.0"))

        resolution = await resolver.resolve(
            revision,
            _content(make_package_yaml, {"provider": AWS, "version": ">=v1.0.0"}),
        )

        assert resolution.status == DependencyStatus(1, 1, 0)
        assert resolution.created == []

    @pytest.mark.asyncio
    async def test_installed_version_too_old(self, store, resolver, revision, make_package_yaml):
        await store.create(PROVIDER.new_package("provider-aws", f"{AWS}:v1.2.0"))

        resolution = await resolver.resolve(
            revision,
            _content(make_package_yaml, {"provider": AWS, "version": ">=v2.0.0"}),
        )

        assert resolution.status == DependencyStatus(1, 0, 1)
        assert resolution.condition.reason == REASON_DEPENDENCIES_INVALID
        # The installed package is never changed to fit.
        assert (await store.get(Provider, "provider-aws")).source == f"{AWS}:v1.2.0"

    @pytest.mark.asyncio
    async def test_kind_mismatch(self, store, resolver, revision, make_package_yaml):
        await store.create(PROVIDER.new_package("provider-aws", f"{AWS}:v1.2.0"))

        resolution = await resolver.resolve(
            revision,
            _content(make_package_yaml, {"configuration": AWS, "version": "*"}),
        )

        assert resolution.status == DependencyStatus(1, 0, 1)

    @pytest.mark.asyncio
    async def test_digest_constraint(self, store, resolver, revision, make_package_yaml):
        package = PROVIDER.new_package("provider-aws", f"{AWS}:v1.2.0")
        package.current_identifier = DIGEST
        await store.create(package)

        resolution = await resolver.resolve(
            revision,
            _content(make_package_yaml, {"provider": AWS, "version": DIGEST}),
        )

        assert resolution.status == DependencyStatus(1, 1, 0)

    @pytest.mark.asyncio
    async def test_mixed(self, store, resolver, revision, make_package_yaml):
        await store.create(PROVIDER.new_package("provider-aws", f"{AWS}:v1.2.0"))

        resolution = await resolver.resolve(
            revision,
            _content(
                make_package_yaml,
                {"provider": AWS, "version": ">=v1.0.0"},
                {"provider": GCP, "version": ">=v1.0.0"},
                {"provider": f"{REGISTRY}/acme/provider-azure", "version": "not-a-range!"},
            ),
        )

        status = resolution.status
        assert (status.found, status.installed, status.invalid) == (3, 1, 2)
        assert 0 <= status.installed <= status.found
        assert 0 <= status.invalid <= status.found


class TestInstallOnDemand:
    """Test installing missing dependencies."""

    @pytest.mark.asyncio
    async def test_installs_highest_satisfying_tag(
        self, store, fetcher, resolver, revision, make_package_yaml
    ):
        for tag in ("v1.0.0", "v1.1.0", "v2.0.0"):
            fetcher.add(f"{GCP}:{tag}", make_package_yaml("provider-gcp"))
        content = _content(make_package_yaml, {"provider": GCP, "version": "^1.0"})

        first = await resolver.resolve(revision, content)
        installed = await store.get(Provider, "acme-provider-gcp")
        second = await resolver.resolve(revision, content)

        assert first.status == DependencyStatus(1, 0, 0)
        assert first.created == ["acme-provider-gcp"]
        assert first.condition.reason == REASON_DEPENDENCIES_PENDING
        assert installed.source == f"{GCP}:v1.1.0"
        assert second.status == DependencyStatus(1, 1, 0)
        assert second.created == []

    @pytest.mark.asyncio
    async def test_installs_by_digest(self, store, resolver, revision, make_package_yaml):
        content = _content(make_package_yaml, {"provider": GCP, "version": DIGEST})

        resolution = await resolver.resolve(revision, content)

        assert resolution.status == DependencyStatus(1, 0, 0)
        assert (await store.get(Provider, "acme-provider-gcp")).source == f"{GCP}@{DIGEST}"

    @pytest.mark.asyncio
    async def test_installs_configuration(
        self, store, fetcher, resolver, revision, make_package_yaml
    ):
        base = f"{REGISTRY}/acme/base"
        fetcher.add(f"{base}:v1.0.0", make_package_yaml("base", "Configuration"))
        content = _content(make_package_yaml, {"configuration": base, "version": ">=v1.0.0"})

        await resolver.resolve(revision, content)

        assert (await store.get(Configuration, "acme-base")).source == f"{base}:v1.0.0"

    @pytest.mark.asyncio
    async def test_no_satisfying_tag(self, store, fetcher, resolver, revision, make_package_yaml):
        fetcher.add(f"{GCP}:v1.0.0", make_package_yaml("provider-gcp"))
        content = _content(make_package_yaml, {"provider": GCP, "version": ">=v3.0.0"})

        resolution = await resolver.resolve(revision, content)

        assert resolution.status == DependencyStatus(1, 0, 1)
        assert await store.list(Provider) == []

    @pytest.mark.asyncio
    async def test_auto_install_disabled(
        self, store, fetcher, settings, revision, make_package_yaml
    ):
        fetcher.add(f"{GCP}:v1.0.0", make_package_yaml("provider-gcp"))
        settings.auto_install_dependencies = False
        resolver = DependencyResolver(store, fetcher, settings)

        resolution = await resolver.resolve(
            revision, _content(make_package_yaml, {"provider": GCP, "version": "*"})
        )

        assert resolution.status == DependencyStatus(1, 0, 1)
        assert await store.list(Provider) == []

    @pytest.mark.asyncio
    async def test_installed_package_uses_default_pull_policy(
        self, store, fetcher, settings, revision, make_package_yaml
    ):
        fetcher.add(f"{GCP}:v1.0.0", make_package_yaml("provider-gcp"))
        settings.default_pull_policy = PullPolicy.ALWAYS
        resolver = DependencyResolver(store, fetcher, settings)

        await resolver.resolve(
            revision, _content(make_package_yaml, {"provider": GCP, "version": "*"})
        )
        installed = await store.get(Provider, "acme-provider-gcp")

        assert installed.package_pull_policy == PullPolicy.ALWAYS

    @pytest.mark.asyncio
    async def test_name_taken_by_other_repository(
        self, store, fetcher, resolver, revision, make_package_yaml
    ):
        fetcher.add(f"{GCP}:v1.0.0", make_package_yaml("provider-gcp"))
        await store.create(PROVIDER.new_package("acme-provider-gcp", "other.io/x/y:v1"))

        resolution = await resolver.resolve(
            revision, _content(make_package_yaml, {"provider": GCP, "version": "*"})
        )

        assert resolution.status == DependencyStatus(1, 0, 1)

    @pytest.mark.asyncio
    async def test_cycle_resolves_direct_dependencies_only(
        self, store, fetcher, resolver, make_package_yaml
    ):
        a, b = f"{REGISTRY}/acme/a", f"{REGISTRY}/acme/b"
        await store.create(CONFIGURATION.new_package("acme-a", f"{a}:v1.0.0"))
        await store.create(CONFIGURATION.new_package("acme-b", f"{b}:v1.0.0"))
        content_a = parse_package(
            make_package_yaml("a", "Configuration", depends_on=[{"configuration": b}])
        )
        content_b = parse_package(
            make_package_yaml("b", "Configuration", depends_on=[{"configuration": a}])
        )
        rev_a = CONFIGURATION.new_revision("acme-a-1", f"{a}:v1.0.0", 1)
        rev_b = CONFIGURATION.new_revision("acme-b-1", f"{b}:v1.0.0", 1)

        assert (await resolver.resolve(rev_a, content_a)).status == DependencyStatus(1, 1, 0)
        assert (await resolver.resolve(rev_b, content_b)).status == DependencyStatus(1, 1, 0)


class TestSkipAndPlatform:
    """Test skipping resolution and platform constraints."""

    @pytest.mark.asyncio
    async def test_skip(self, store, resolver, revision, make_package_yaml):
        revision.skip_dependency_resolution = True

        resolution = await resolver.resolve(
            revision, _content(make_package_yaml, {"provider": GCP, "version": "*"})
        )

        assert resolution.status == DependencyStatus(0, 0, 0)
        assert resolution.condition.reason == REASON_DEPENDENCIES_SKIPPED
        assert await store.list(Provider) == []

    def test_platform_compatible(self, resolver, revision, make_package_yaml):
        resolver.check_platform(revision, _content(make_package_yaml, crossplane=">=v1.10.0"))

    def test_platform_incompatible(self, resolver, revision, make_package_yaml):
        with pytest.raises(PlatformConstraintError):
            resolver.check_platform(revision, _content(make_package_yaml, crossplane=">=v2.0.0"))

    def test_platform_ignored(self, resolver, revision, make_package_yaml):
        revision.ignore_crossplane_constraints = True

        resolver.check_platform(revision, _content(make_package_yaml, crossplane=">=v2.0.0"))

    def test_invalid_platform_constraint(self, resolver, revision, make_package_yaml):
        with pytest.raises(PlatformConstraintError):
            resolver.check_platform(revision, _content(make_package_yaml, crossplane=">=nope"))


class TestInstalledVersion:
    def test_tag(self):
        package = PROVIDER.new_package("p", f"{AWS}:v1.2.0")

        assert installed_version(package, ">=v1.0.0") == "v1.2.0"

    def test_digest_constraint_uses_identifier(self):
        package = PROVIDER.new_package("p", f"{AWS}:v1.2.0")
        package.current_identifier = DIGEST

        assert installed_version(package, DIGEST) == DIGEST
