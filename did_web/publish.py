"""Publishing a DID document where a did:web resolver will look for it.

Three files are written per publish:
- <archive_dir>/did.json                      private copy of the document
- <publication_root>/x509CertificateChain.pem the chain the key's x5u names
- <publication_root>/did.json                 the document itself

Everything is staged next to its target first and only then renamed into
place, certificate before document, so a resolver never sees a document
whose certificate is not yet reachable.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

import structlog

from did_web.did import (
    CERTIFICATE_CHAIN_FILENAME,
    DOCUMENT_FILENAME,
    WELL_KNOWN,
    Resolution,
    WebDid,
)
from did_web.document import DidDocument
from did_web.errors import InvalidDIDError, PublishError

logger = structlog.get_logger(__name__)

DEFAULT_ARCHIVE_DIR = "did-document"
DEFAULT_KEYS_DIR = "keys"


@dataclass(frozen=True, slots=True)
class PublishedFiles:
    archive_document: Path
    certificate_chain: Path
    document: Path


class Publisher:
    """Writes documents and certificate chains below a served root."""

    def __init__(
        self,
        root: Path,
        archive_dir: str = DEFAULT_ARCHIVE_DIR,
        keys_dir: str = DEFAULT_KEYS_DIR,
    ) -> None:
        self.root = Path(root)
        self.archive_dir = archive_dir
        self.keys_dir = keys_dir

    def publication_dir(self, resolution: Resolution) -> Path:
        """Directory for ``resolution``.

        Refuses anything outside the root, anything the server would not
        serve (hidden directories other than .well-known) and the private
        keys and archive directories.
        """
        publication_root = resolution.publication_root
        root = self.root.resolve()
        target = (root / publication_root).resolve()
        if target == root or root not in target.parents:
            raise PublishError(f"publication root {publication_root!r} escapes {root}")

        segments = publication_root.split("/")
        if segments[0] in (self.keys_dir, self.archive_dir):
            raise PublishError(
                f"publication root {publication_root!r} is reserved for private files"
            )
        if publication_root != WELL_KNOWN and any(
            not segment or segment.startswith(".") for segment in segments
        ):
            raise PublishError(f"publication root {publication_root!r} is not servable")

        return target

    def publish(
        self,
        document: DidDocument,
        resolution: Resolution,
        certificate_chain: Path,
    ) -> PublishedFiles:
        """Publish ``document`` and its certificate chain.

        Args:
            document: Built document; its id must be ``resolution.did``.
            resolution: Output of :func:`did_web.did.resolve` for the same DID.
            certificate_chain: PEM file to publish next to the document.

        Raises:
            PublishError: If the inputs disagree, the certificate is missing,
                or a write fails. Nothing is left half-written.
        """
        if document.id != resolution.did:
            raise PublishError(
                f"document id {document.id!r} does not match {resolution.did!r}"
            )
        if document.x5u != resolution.x5u:
            raise PublishError(
                f"document x5u {document.x5u!r} does not match {resolution.x5u!r}"
            )

        try:
            certificate = Path(certificate_chain).read_bytes()
        except OSError as exc:
            raise PublishError(f"certificate chain unavailable: {exc}") from exc

        target_dir = self.publication_dir(resolution)
        _check_resolution(resolution)
        archive_dir = self.root / self.archive_dir
        content = document.to_json().encode("utf-8")

        files = PublishedFiles(
            archive_document=archive_dir / DOCUMENT_FILENAME,
            certificate_chain=target_dir / CERTIFICATE_CHAIN_FILENAME,
            document=target_dir / DOCUMENT_FILENAME,
        )
        # Rename order matters: the public document goes last.
        plan = [
            (files.archive_document, content),
            (files.certificate_chain, certificate),
            (files.document, content),
        ]

        staged: list[tuple[Path, Path]] = []
        try:
            for target, data in plan:
                staged.append((_stage(target, data), target))
            for temp, target in staged:
                os.replace(temp, target)
        except OSError as exc:
            for temp, _ in staged:
                temp.unlink(missing_ok=True)
            raise PublishError(f"write failed: {exc}") from exc

        logger.info(
            "did_document_published",
            did=resolution.did,
            publication_root=resolution.publication_root,
            fingerprint=document.fingerprint,
        )
        return files


def _check_resolution(resolution: Resolution) -> None:
    # A hand-built Resolution must still point where its DID resolves to.
    try:
        web_did = WebDid.parse(resolution.did)
    except InvalidDIDError as exc:
        raise PublishError(f"cannot publish {resolution.did!r}: {exc}") from exc
    if web_did.publication_root != resolution.publication_root:
        raise PublishError(
            f"{resolution.did!r} resolves to {web_did.publication_root!r}, "
            f"not {resolution.publication_root!r}"
        )


def _stage(target: Path, data: bytes) -> Path:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
    except OSError:
        os.unlink(name)
        raise
    # mkstemp creates 0600 files; published files must be world-readable.
    os.chmod(name, 0o644)
    return Path(name)
