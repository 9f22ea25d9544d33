"""did:web - publish a DID document for a web domain.

Turns a domain (and optional path) plus an RSA public key into a W3C DID
document, and places it where a did:web resolver will fetch it.

Example:
    >>> from did_web import resolve, build
    >>> resolution = resolve("example.com", "tenants/acme")
    >>> resolution.did
    'did:web:example.com:tenants:acme'
    >>> resolution.x5u
    'https://example.com/tenants/acme/x509CertificateChain.pem'
    >>> doc = build(resolution.did, public_jwk, resolution.x5u)
"""

from did_web.canonical import canonicalize, dumps_document, hash_canonical
from did_web.did import Resolution, WebDid, resolve
from did_web.document import (
    BuildOptions,
    DidDocument,
    Service,
    ServiceEndpoint,
    VerificationMethod,
    build,
)
from did_web.errors import (
    DidWebError,
    DuplicateServiceIdError,
    InvalidDIDError,
    InvalidInputError,
    KeyMaterialError,
    PublishError,
    SerializationError,
)
from did_web.keys import KeyPair, load_public_jwk
from did_web.publish import PublishedFiles, Publisher

__version__ = "0.1.0"

__all__ = [
    # Core
    "Resolution",
    "WebDid",
    "resolve",
    # Document
    "BuildOptions",
    "DidDocument",
    "Service",
    "ServiceEndpoint",
    "VerificationMethod",
    "build",
    # Serialization
    "canonicalize",
    "dumps_document",
    "hash_canonical",
    # Keys and publishing
    "KeyPair",
    "load_public_jwk",
    "PublishedFiles",
    "Publisher",
    # Errors
    "DidWebError",
    "DuplicateServiceIdError",
    "InvalidDIDError",
    "InvalidInputError",
    "KeyMaterialError",
    "PublishError",
    "SerializationError",
]
