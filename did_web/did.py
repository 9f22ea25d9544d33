"""did:web identifier handling.

Format: did:web:<domain>[:<segment>]*

The method maps an identifier onto an HTTPS location:
- did:web:example.com            -> https://example.com/.well-known/did.json
- did:web:example.com:a:b        -> https://example.com/a/b/did.json

The certificate chain referenced by the key's x5u lives next to the
document, so both URLs are derived here and nowhere else.
"""

from dataclasses import dataclass

from did_web.errors import InvalidDIDError, InvalidInputError

DID_WEB_PREFIX = "did:web:"

WELL_KNOWN = ".well-known"
DOCUMENT_FILENAME = "did.json"
CERTIFICATE_CHAIN_FILENAME = "x509CertificateChain.pem"


def _check_segment(segment: str) -> None:
    if not segment:
        raise InvalidInputError("path contains an empty segment")
    # Dot-prefixed names are never served; this also covers "." and ".."
    # and keeps ".well-known" reserved for the bare-domain DID.
    if segment.startswith("."):
        raise InvalidInputError(f"path segment {segment!r} is not allowed")
    if ":" in segment:
        raise InvalidInputError(f"path segment {segment!r} must not contain ':'")


@dataclass(frozen=True, slots=True)
class WebDid:
    """A did:web identifier.

    Attributes:
        domain: Host part, kept verbatim (a port is written as ``%3A``).
        path: Directory levels under the domain, outermost first.
    """

    domain: str
    path: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.domain or not self.domain.strip():
            raise InvalidInputError("domain is required")
        for segment in self.path:
            _check_segment(segment)

    @classmethod
    def from_parts(cls, domain: str | None, raw_path: str | None = None) -> "WebDid":
        """Create from a domain and an optional slash-delimited path.

        Args:
            domain: Web host, surrounding whitespace is dropped.
            raw_path: e.g. ``"tenants/acme"``. Blank means no path.

        Raises:
            InvalidInputError: If the domain is blank or a segment is invalid.
        """
        if domain is None or not domain.strip():
            raise InvalidInputError("domain is required")

        segments: tuple[str, ...] = ()
        if raw_path is not None and raw_path.strip():
            segments = tuple(raw_path.strip().split("/"))

        return cls(domain=domain.strip(), path=segments)

    @classmethod
    def parse(cls, did_string: str) -> "WebDid":
        """Parse a did:web string.

        Raises:
            InvalidDIDError: If the string is not a did:web identifier.
        """
        if not did_string.startswith(DID_WEB_PREFIX):
            raise InvalidDIDError("must start with 'did:web:'")

        domain, *segments = did_string[len(DID_WEB_PREFIX) :].split(":")
        try:
            return cls(domain=domain, path=tuple(segments))
        except InvalidInputError as exc:
            raise InvalidDIDError(str(exc)) from exc

    @property
    def host(self) -> str:
        """Domain as it appears in a URL, with the port separator decoded."""
        return self.domain.replace("%3A", ":").replace("%3a", ":")

    @property
    def publication_root(self) -> str:
        """Relative directory holding did.json and the certificate chain."""
        if not self.path:
            return WELL_KNOWN
        return "/".join(self.path)

    @property
    def base_url(self) -> str:
        return f"https://{self.host}/{self.publication_root}"

    @property
    def document_url(self) -> str:
        """URL a resolver fetches for this DID."""
        return f"{self.base_url}/{DOCUMENT_FILENAME}"

    @property
    def x5u(self) -> str:
        """URL of the certificate chain advertised in the key."""
        return f"{self.base_url}/{CERTIFICATE_CHAIN_FILENAME}"

    def __str__(self) -> str:
        return DID_WEB_PREFIX + ":".join((self.domain, *self.path))

    def __repr__(self) -> str:
        return f"WebDid({self})"


@dataclass(frozen=True, slots=True)
class Resolution:
    """Where a DID's document and certificate chain are published."""

    did: str
    publication_root: str
    x5u: str


def resolve(domain: str | None, raw_path: str | None = None) -> Resolution:
    """Compute the DID and its publication location.

    Args:
        domain: Web host, e.g. ``"example.com"``.
        raw_path: Optional slash-delimited path, e.g. ``"tenants/acme"``.

    Returns:
        The DID string, the relative publication root and the x5u URL,
        all derived from the same parsed identifier.

    Raises:
        InvalidInputError: If the domain is blank or the path is malformed.
    """
    web_did = WebDid.from_parts(domain, raw_path)
    return Resolution(
        did=str(web_did),
        publication_root=web_did.publication_root,
        x5u=web_did.x5u,
    )
