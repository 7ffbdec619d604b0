"""Tests for package sources, content parsing and fetchers."""

import pytest
import yaml
from pkgplane.core.errors import ContentInvalidError, FetchError
from pkgplane.xpkg import (
    DirectoryFetcher,
    StaticFetcher,
    digest_of,
    identifier_for,
    package_name_for,
    parse_package,
    parse_source,
    revision_name,
    same_repository,
)
from pkgplane.xpkg.identity import MAX_NAME_LENGTH

DIGEST = "sha256:" + "ab12" * 16


class TestParseSource:
    """Test image reference parsing."""

    def test_registry_path_tag(self):
        ref = parse_source("xpkg.example.io/acme/provider-aws:v1.2.0")

        assert ref.registry == "xpkg.example.io"
        assert ref.path == "acme/provider-aws"
        assert ref.tag == "v1.2.0"
        assert ref.digest is None
        assert ref.repository == "xpkg.example.io/acme/provider-aws"
        assert ref.version == "v1.2.0"

    def test_no_registry(self):
        ref = parse_source("acme/provider-aws")

        assert ref.registry == ""
        assert ref.repository == "acme/provider-aws"
        assert ref.tag is None

    def test_registry_with_port(self):
        ref = parse_source("localhost:5000/acme/provider-aws:v1")

        assert ref.registry == "localhost:5000"
        assert ref.path == "acme/provider-aws"
        assert ref.tag == "v1"

    def test_digest(self):
        ref = parse_source(f"xpkg.example.io/acme/provider-aws@{DIGEST}")

        assert ref.digest == DIGEST
        assert ref.tag is None
        assert ref.version == DIGEST

    def test_unsupported_digest(self):
        with pytest.raises(ContentInvalidError):
            parse_source("acme/provider-aws@md5:abc")

    def test_empty(self):
        with pytest.raises(ContentInvalidError):
            parse_source("  ")

    def test_same_repository(self):
        assert same_repository("acme/p:v1", "acme/p:v2")
        assert not same_repository("acme/p:v1", "acme/q:v1")

    def test_with_tag(self):
        ref = parse_source("xpkg.example.io/acme/p:v1")

        assert ref.with_tag("v2") == "xpkg.example.io/acme/p:v2"


class TestNames:
    """Test identifiers and derived object names."""

    def test_identifier_prefers_resolved_digest(self):
        assert identifier_for("acme/p:v1", DIGEST) == DIGEST

    def test_identifier_from_pinned_source(self):
        assert identifier_for(f"acme/p@{DIGEST}", None) == DIGEST

    def test_identifier_falls_back_to_source(self):
        assert identifier_for("acme/p:v1", None) == "acme/p:v1"

    def test_revision_name_from_digest(self):
        assert revision_name("provider-aws", DIGEST) == "provider-aws-ab12ab12ab12"

    def test_revision_name_from_tag_is_stable(self):
        first = revision_name("provider-aws", "acme/provider-aws:v1")

        assert first == revision_name("provider-aws", "acme/provider-aws:v1")
        assert first != revision_name("provider-aws", "acme/provider-aws:v2")
        assert first.startswith("provider-aws-")

    def test_long_package_name_keeps_hash(self):
        name = "p" * 80
        a = revision_name(name, "acme/p:v1")
        b = revision_name(name, "acme/p:v2")

        assert len(a) <= MAX_NAME_LENGTH
        assert a != b

    def test_package_name_for(self):
        assert package_name_for("xpkg.example.io/acme/provider-gcp:v1") == "acme-provider-gcp"
        assert package_name_for("Acme/Provider_GCP") == "acme-provider-gcp"


class TestParsePackage:
    """Test package stream parsing and validation."""

    def test_provider(self, make_package_yaml, make_crd):
        text = make_package_yaml(
            crossplane=">=v1.12.0",
            depends_on=[{"provider": "xpkg.example.io/acme/provider-base", "version": ">=v1.0.0"}],
            objects=[make_crd("buckets.aws.example.io"), make_crd("queues.aws.example.io")],
            controller={
                "image": "xpkg.example.io/acme/provider-aws-controller:v1",
                "permissionRequests": [
                    {"apiGroups": [""], "resources": ["secrets"], "verbs": ["get"]}
                ],
            },
        )

        content = parse_package(text)

        assert content.kind == "Provider"
        assert content.meta.metadata.name == "provider-aws"
        assert [o.name for o in content.objects] == [
            "buckets.aws.example.io",
            "queues.aws.example.io",
        ]
        assert content.platform_constraint == ">=v1.12.0"
        assert content.dependencies[0].package == "xpkg.example.io/acme/provider-base"
        assert content.dependencies[0].kind == "Provider"
        assert content.permission_requests[0].resources == ["secrets"]
        assert not content.needs_webhook_tls

    def test_configuration(self, make_package_yaml):
        text = make_package_yaml(
            "platform",
            "Configuration",
            objects=[
                {
                    "apiVersion": "apiextensions.crossplane.io/v1",
                    "kind": "Composition",
                    "metadata": {"name": "cluster"},
                }
            ],
            depends_on=[{"configuration": "acme/base", "version": "^1.0"}],
        )

        content = parse_package(text)

        assert content.kind == "Configuration"
        assert content.dependencies[0].kind == "Configuration"

    def test_crd_versions(self, make_package_yaml, make_crd):
        content = parse_package(make_package_yaml(objects=[make_crd("a.example.io", ("v1", "v2"))]))

        assert content.objects[0].versions == frozenset({"v1", "v2"})

    def test_webhook_tls_from_conversion(self, make_package_yaml, make_crd):
        text = make_package_yaml(objects=[make_crd("a.example.io", conversion="Webhook")])

        assert parse_package(text).needs_webhook_tls

    def test_webhook_tls_from_webhook_configuration(self, make_package_yaml):
        webhook = {
            "apiVersion": "admissionregistration.k8s.io/v1",
            "kind": "ValidatingWebhookConfiguration",
            "metadata": {"name": "provider-aws"},
        }

        assert parse_package(make_package_yaml(objects=[webhook])).needs_webhook_tls

    def test_ess_tls(self, make_package_yaml):
        text = make_package_yaml(controller={"externalSecretStores": True})

        assert parse_package(text).needs_ess_tls

    def test_missing_meta(self, make_crd):
        with pytest.raises(ContentInvalidError):
            parse_package(yaml.safe_dump(make_crd("a.example.io")))

    def test_two_metas(self, make_package_yaml):
        text = make_package_yaml() + "---\n" + make_package_yaml("other", objects=[])

        with pytest.raises(ContentInvalidError):
            parse_package(text)

    def test_invalid_yaml(self):
        with pytest.raises(ContentInvalidError):
            parse_package("apiVersion: [unclosed")

    def test_non_mapping_document(self, make_package_yaml):
        with pytest.raises(ContentInvalidError):
            parse_package(make_package_yaml() + "---\n- a\n- b\n")

    def test_disallowed_object_kind(self, make_package_yaml):
        composition = {
            "apiVersion": "apiextensions.crossplane.io/v1",
            "kind": "Composition",
            "metadata": {"name": "cluster"},
        }

        with pytest.raises(ContentInvalidError, match="may not contain"):
            parse_package(make_package_yaml(objects=[composition]))

    def test_duplicate_object(self, make_package_yaml, make_crd):
        with pytest.raises(ContentInvalidError, match="more than once"):
            parse_package(make_package_yaml(objects=[make_crd("a.example.io")] * 2))

    def test_object_without_name(self, make_package_yaml):
        obj = {"apiVersion": "apiextensions.k8s.io/v1", "kind": "CustomResourceDefinition"}

        with pytest.raises(ContentInvalidError):
            parse_package(make_package_yaml(objects=[obj]))

    def test_dependency_needs_one_source(self, make_package_yaml):
        text = make_package_yaml(depends_on=[{"provider": "acme/a", "function": "acme/b"}])

        with pytest.raises(ContentInvalidError):
            parse_package(text)

    def test_unknown_package_kind(self, make_package_yaml):
        with pytest.raises(ContentInvalidError):
            parse_package(make_package_yaml(kind="Widget", objects=[]))


class TestStaticFetcher:
    """Test the in-memory fetcher."""

    @pytest.mark.asyncio
    async def test_fetch_by_tag_and_digest(self, make_package_yaml):
        fetcher = StaticFetcher()
        text = make_package_yaml()
        fetcher.add("xpkg.example.io/acme/provider-aws:v1", text)

        digest = await fetcher.resolve_digest("xpkg.example.io/acme/provider-aws:v1")
        by_digest = await fetcher.fetch(f"xpkg.example.io/acme/provider-aws@{digest}")

        assert digest == digest_of(text.encode("utf-8"))
        assert by_digest.meta.metadata.name == "provider-aws"

    @pytest.mark.asyncio
    async def test_tags(self, make_package_yaml):
        fetcher = StaticFetcher()
        for tag in ("v1.0.0", "v1.1.0"):
            fetcher.add(f"acme/provider-aws:{tag}", make_package_yaml())
        fetcher.add("acme/provider-gcp:v2.0.0", make_package_yaml("provider-gcp"))

        assert await fetcher.tags("acme/provider-aws") == ["v1.0.0", "v1.1.0"]

    @pytest.mark.asyncio
    async def test_missing(self):
        fetcher = StaticFetcher()

        assert await fetcher.resolve_digest("acme/p:v1") is None
        with pytest.raises(FetchError):
            await fetcher.fetch("acme/p:v1")

    @pytest.mark.asyncio
    async def test_configured_failure(self):
        fetcher = StaticFetcher()
        fetcher.fail("acme/p:v1", ContentInvalidError("corrupt"))

        with pytest.raises(ContentInvalidError):
            await fetcher.fetch("acme/p:v1")


class TestDirectoryFetcher:
    """Test serving packages from disk."""

    @pytest.fixture
    def package_dir(self, tmp_path, make_package_yaml):
        repo = tmp_path / "xpkg.example.io" / "acme" / "provider-aws"
        repo.mkdir(parents=True)
        (repo / "v1.0.0.yaml").write_text(make_package_yaml())
        (repo / "v1.1.0.yaml").write_text(make_package_yaml(crossplane=">=v1.0.0"))
        return tmp_path

    @pytest.mark.asyncio
    async def test_fetch_by_tag(self, package_dir):
        fetcher = DirectoryFetcher(package_dir)

        content = await fetcher.fetch("xpkg.example.io/acme/provider-aws:v1.1.0")

        assert content.platform_constraint == ">=v1.0.0"

    @pytest.mark.asyncio
    async def test_digest_is_file_hash(self, package_dir):
        fetcher = DirectoryFetcher(package_dir)
        path = package_dir / "xpkg.example.io" / "acme" / "provider-aws" / "v1.0.0.yaml"

        digest = await fetcher.resolve_digest("xpkg.example.io/acme/provider-aws:v1.0.0")

        assert digest == digest_of(path.read_bytes())

    @pytest.mark.asyncio
    async def test_fetch_by_digest(self, package_dir):
        fetcher = DirectoryFetcher(package_dir)
        digest = await fetcher.resolve_digest("xpkg.example.io/acme/provider-aws:v1.1.0")

        content = await fetcher.fetch(f"xpkg.example.io/acme/provider-aws@{digest}")

        assert content.platform_constraint == ">=v1.0.0"

    @pytest.mark.asyncio
    async def test_tags(self, package_dir):
        fetcher = DirectoryFetcher(package_dir)

        assert await fetcher.tags("xpkg.example.io/acme/provider-aws") == ["v1.0.0", "v1.1.0"]
        assert await fetcher.tags("xpkg.example.io/acme/missing") == []

    @pytest.mark.asyncio
    async def test_missing(self, package_dir):
        fetcher = DirectoryFetcher(package_dir)

        assert await fetcher.resolve_digest("xpkg.example.io/acme/provider-aws:v9") is None
        with pytest.raises(FetchError):
            await fetcher.fetch("xpkg.example.io/acme/provider-aws:v9")

    @pytest.mark.asyncio
    async def test_invalid_content(self, package_dir):
        bad = package_dir / "xpkg.example.io" / "acme" / "provider-aws" / "v2.0.0.yaml"
        bad.write_text("not: [valid")
        fetcher = DirectoryFetcher(package_dir)

        with pytest.raises(ContentInvalidError):
            await fetcher.fetch("xpkg.example.io/acme/provider-aws:v2.0.0")
