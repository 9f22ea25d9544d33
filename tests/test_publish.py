"""Tests for publishing documents to the served tree."""

import json
import os
import stat
from pathlib import Path

import pytest

from did_web import PublishError, Publisher, build, resolve
from did_web.did import Resolution

CERT = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


@pytest.fixture
def certificate(tmp_path: Path) -> Path:
    path = tmp_path / "keys" / "x509CertificateChain.pem"
    path.parent.mkdir()
    path.write_bytes(CERT)
    return path


def _files(root: Path) -> set[str]:
    return {str(p.relative_to(root)) for p in root.rglob("*") if p.is_file()}


class TestPublisher:
    def test_publish_well_known(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        """Document and certificate land in .well-known plus the archive."""
        resolution = resolve("example.com")
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        files = Publisher(tmp_path).publish(doc, resolution, certificate)

        assert files.document == (tmp_path / ".well-known" / "did.json").resolve()
        assert files.certificate_chain.read_bytes() == CERT
        assert files.archive_document == tmp_path / "did-document" / "did.json"
        assert files.document.read_text() == doc.to_json()
        assert files.archive_document.read_text() == doc.to_json()

    def test_publish_custom_path(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        """Nested paths are created and match the x5u."""
        resolution = resolve("example.com", "tenants/acme")
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        Publisher(tmp_path).publish(doc, resolution, certificate)

        published = json.loads((tmp_path / "tenants" / "acme" / "did.json").read_text())
        assert published["id"] == "did:web:example.com:tenants:acme"
        assert (tmp_path / "tenants" / "acme" / "x509CertificateChain.pem").read_bytes() == CERT
        assert not (tmp_path / ".well-known").exists()

    def test_files_world_readable(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        resolution = resolve("example.com")
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        files = Publisher(tmp_path).publish(doc, resolution, certificate)

        assert stat.S_IMODE(os.stat(files.document).st_mode) == 0o644

    def test_no_temp_files_left(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        resolution = resolve("example.com")
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        Publisher(tmp_path).publish(doc, resolution, certificate)

        assert not [name for name in _files(tmp_path) if name.endswith(".tmp")]

    def test_republish_overwrites(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        """Publishing again replaces the previous document."""
        resolution = resolve("example.com")
        publisher = Publisher(tmp_path)
        publisher.publish(build(resolution.did, rsa_jwk, resolution.x5u), resolution, certificate)

        rsa_jwk["n"] = "changed"
        publisher.publish(build(resolution.did, rsa_jwk, resolution.x5u), resolution, certificate)

        published = json.loads((tmp_path / ".well-known" / "did.json").read_text())
        assert published["verificationMethod"][0]["publicKeyJwk"]["n"] == "changed"

    def test_missing_certificate(self, tmp_path: Path, rsa_jwk: dict) -> None:
        """Nothing is written when the certificate is missing."""
        resolution = resolve("example.com")
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        with pytest.raises(PublishError, match="certificate chain unavailable"):
            Publisher(tmp_path).publish(doc, resolution, tmp_path / "missing.pem")

        assert _files(tmp_path) == set()

    def test_mismatched_did(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        """Document must belong to the resolution."""
        resolution = resolve("example.com")
        doc = build("did:web:other.com", rsa_jwk, resolution.x5u)

        with pytest.raises(PublishError, match="does not match"):
            Publisher(tmp_path).publish(doc, resolution, certificate)

    def test_mismatched_x5u(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        """Advertised certificate URL must match the publication path."""
        resolution = resolve("example.com", "tenants/acme")
        doc = build(resolution.did, rsa_jwk, "https://example.com/.well-known/x509CertificateChain.pem")

        with pytest.raises(PublishError, match="x5u"):
            Publisher(tmp_path).publish(doc, resolution, certificate)

    def test_escaping_root(self, tmp_path: Path, certificate: Path, rsa_jwk: dict) -> None:
        """Publication roots outside the served tree are refused."""
        resolution = Resolution(
            did="did:web:example.com",
            publication_root="../outside",
            x5u="https://example.com/.well-known/x509CertificateChain.pem",
        )
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        with pytest.raises(PublishError, match="escapes"):
            Publisher(tmp_path / "site").publish(doc, resolution, certificate)

        assert not (tmp_path / "outside").exists()

    @pytest.mark.parametrize("raw_path", ["keys", "keys/x", "did-document"])
    def test_private_directories_refused(
        self, tmp_path: Path, certificate: Path, rsa_jwk: dict, raw_path: str
    ) -> None:
        """Key and archive directories never receive a public document."""
        resolution = resolve("example.com", raw_path)
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        with pytest.raises(PublishError, match="reserved"):
            Publisher(tmp_path).publish(doc, resolution, certificate)

        assert _files(tmp_path) == {"keys/x509CertificateChain.pem"}

    def test_custom_private_directories(
        self, tmp_path: Path, certificate: Path, rsa_jwk: dict
    ) -> None:
        resolution = resolve("example.com", "secrets/user")
        doc = build(resolution.did, rsa_jwk, resolution.x5u)
        publisher = Publisher(tmp_path, archive_dir="archive", keys_dir="secrets")

        with pytest.raises(PublishError, match="reserved"):
            publisher.publish(doc, resolution, certificate)

    def test_hidden_directory_refused(
        self, tmp_path: Path, certificate: Path, rsa_jwk: dict
    ) -> None:
        """Only .well-known may be hidden; the server serves nothing else."""
        resolution = Resolution(
            did="did:web:example.com:.hidden",
            publication_root=".hidden",
            x5u="https://example.com/.hidden/x509CertificateChain.pem",
        )
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        with pytest.raises(PublishError, match="not servable"):
            Publisher(tmp_path).publish(doc, resolution, certificate)

        assert not (tmp_path / ".hidden").exists()

    def test_bare_domain_document_not_overwritten(
        self, tmp_path: Path, certificate: Path, rsa_jwk: dict
    ) -> None:
        """A path DID cannot take over the .well-known location."""
        root_resolution = resolve("example.com")
        root_doc = build(root_resolution.did, rsa_jwk, root_resolution.x5u)
        publisher = Publisher(tmp_path)
        publisher.publish(root_doc, root_resolution, certificate)

        resolution = Resolution(
            did="did:web:example.com:.well-known",
            publication_root=".well-known",
            x5u=root_resolution.x5u,
        )
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        with pytest.raises(PublishError, match="cannot publish"):
            publisher.publish(doc, resolution, certificate)

        published = json.loads((tmp_path / ".well-known" / "did.json").read_text())
        assert published["id"] == "did:web:example.com"

    def test_resolution_must_match_did(
        self, tmp_path: Path, certificate: Path, rsa_jwk: dict
    ) -> None:
        resolution = Resolution(
            did="did:web:example.com:alice",
            publication_root="bob",
            x5u="https://example.com/bob/x509CertificateChain.pem",
        )
        doc = build(resolution.did, rsa_jwk, resolution.x5u)

        with pytest.raises(PublishError, match="resolves to 'alice'"):
            Publisher(tmp_path).publish(doc, resolution, certificate)

        assert not (tmp_path / "bob").exists()
