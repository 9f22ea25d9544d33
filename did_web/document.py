"""
DID Document assembly for did:web.

A DID Document binds a did:web identifier to:
- One verification method (an RSA public key as JsonWebKey2020)
- The assertion relationship, and optionally authentication
- Optional service endpoints
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from did_web.canonical import dumps_document, hash_canonical
from did_web.errors import DuplicateServiceIdError, InvalidInputError

DID_CORE_CONTEXT = "https://www.w3.org/ns/did/v1"
JWS_2020_CONTEXT = "https://w3c-ccg.github.io/lds-jws2020/contexts/v1/"
VERIFICATION_METHOD_TYPE = "JsonWebKey2020"

# Fragment naming the single RSA key; constant across documents.
FRAGMENT_ID = "JWK2020-RSA"

_RSA_PUBLIC_MEMBERS = ("n", "e")
_RSA_PRIVATE_MEMBERS = ("d", "p", "q", "dp", "dq", "qi")


@dataclass(frozen=True)
class ServiceEndpoint:
    """A requested service: its type and where it lives."""

    type: str
    endpoint: str


@dataclass(frozen=True)
class BuildOptions:
    """Optional sections of a built document."""

    include_authentication: bool = False
    services: Tuple[ServiceEndpoint, ...] = ()

    def __post_init__(self) -> None:
        # Any sequence is accepted; stored as a tuple.
        object.__setattr__(self, "services", tuple(self.services))


@dataclass(frozen=True)
class VerificationMethod:
    """A verification method (public key) in a DID Document."""

    id: str
    type: str
    controller: str
    public_key_jwk: Mapping[str, Any]
    context: str = JWS_2020_CONTEXT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@context": self.context,
            "id": self.id,
            "type": self.type,
            "controller": self.controller,
            "publicKeyJwk": copy.deepcopy(dict(self.public_key_jwk)),
        }


@dataclass(frozen=True)
class Service:
    """A service endpoint in a DID Document."""

    id: str
    type: str
    service_endpoint: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "serviceEndpoint": self.service_endpoint,
        }


@dataclass(frozen=True)
class DidDocument:
    """
    A did:web DID Document.

    Instances are produced by :func:`build` and never change afterwards;
    ``to_dict`` hands out a fresh copy on every call.

    Example:
        >>> doc = build("did:web:example.com", jwk, x5u)
        >>> doc.to_dict()["assertionMethod"]
        ['did:web:example.com#JWK2020-RSA']
    """

    id: str
    verification_methods: Tuple[VerificationMethod, ...]
    assertion_method: Tuple[str, ...]
    authentication: Optional[Tuple[str, ...]] = None
    services: Tuple[Service, ...] = field(default_factory=tuple)

    @property
    def x5u(self) -> Optional[str]:
        """Certificate chain URL carried by the first key, if any."""
        if not self.verification_methods:
            return None
        return self.verification_methods[0].public_key_jwk.get("x5u")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a JSON-serializable dictionary.

        Key order follows DID Core: context, id, verification methods,
        relationships, then services. Optional sections are omitted rather
        than emitted empty.
        """
        doc: Dict[str, Any] = {
            "@context": [DID_CORE_CONTEXT],
            "id": self.id,
            "verificationMethod": [vm.to_dict() for vm in self.verification_methods],
            "assertionMethod": list(self.assertion_method),
        }

        if self.authentication is not None:
            doc["authentication"] = list(self.authentication)

        if self.services:
            doc["service"] = [s.to_dict() for s in self.services]

        return doc

    def to_json(self) -> str:
        """Pretty-printed JSON as written to did.json."""
        return dumps_document(self.to_dict())

    @property
    def fingerprint(self) -> str:
        """Hex SHA-256 of the canonical (JCS) form of the document."""
        return hash_canonical(self.to_dict()).hex()

    def __repr__(self) -> str:
        return f"DidDocument({self.id}, services={len(self.services)})"


def annotate_jwk(public_key: Mapping[str, Any], x5u: str) -> Dict[str, Any]:
    """Return a copy of ``public_key`` carrying the certificate chain URL."""
    annotated = copy.deepcopy(dict(public_key))
    annotated["x5u"] = x5u
    return annotated


def _validate_public_key(public_key: Any) -> None:
    if public_key is None:
        raise InvalidInputError("public key is required")
    if not isinstance(public_key, Mapping):
        raise InvalidInputError("public key must be a JWK mapping")

    kty = public_key.get("kty")
    if kty != "RSA":
        raise InvalidInputError(f"unsupported key type {kty!r} (expected 'RSA')")

    for member in _RSA_PUBLIC_MEMBERS:
        value = public_key.get(member)
        if not isinstance(value, str) or not value:
            raise InvalidInputError(f"public key is missing '{member}'")

    leaked = [m for m in _RSA_PRIVATE_MEMBERS if m in public_key]
    if leaked:
        raise InvalidInputError(
            f"public key contains private members: {', '.join(leaked)}"
        )


def _build_services(did: str, requested: Sequence[ServiceEndpoint]) -> Tuple[Service, ...]:
    services = []
    seen = set()

    for entry in requested:
        if not entry.type or not entry.type.strip():
            raise InvalidInputError("service type is required")
        if not entry.endpoint or not entry.endpoint.strip():
            raise InvalidInputError(f"service {entry.type!r} has no endpoint")

        fragment = entry.type.lower()
        if fragment in seen:
            raise DuplicateServiceIdError(fragment)
        seen.add(fragment)

        services.append(
            Service(
                id=f"{did}#{fragment}",
                type=entry.type,
                service_endpoint=entry.endpoint,
            )
        )

    return tuple(services)


def build(
    did: str,
    public_key: Mapping[str, Any],
    x5u: str,
    options: Optional[BuildOptions] = None,
) -> DidDocument:
    """
    Assemble a DID Document for a did:web identifier.

    Args:
        did: The identifier, as returned by :func:`did_web.did.resolve`
        public_key: RSA public key in JWK form; left untouched
        x5u: Certificate chain URL from the same resolution
        options: Authentication and service toggles

    Returns:
        A complete, immutable DID Document

    Raises:
        InvalidInputError: If the DID, key, URL or a service is malformed
        DuplicateServiceIdError: If two service types share a fragment id
    """
    if options is None:
        options = BuildOptions()

    if not isinstance(did, str) or not did.strip():
        raise InvalidInputError("did is required")
    if not isinstance(x5u, str) or not x5u.strip():
        raise InvalidInputError("x5u is required")
    _validate_public_key(public_key)

    services = _build_services(did, options.services)

    key_id = f"{did}#{FRAGMENT_ID}"
    jwk = annotate_jwk(public_key, x5u)

    verification_method = VerificationMethod(
        id=key_id,
        type=VERIFICATION_METHOD_TYPE,
        controller=did,
        public_key_jwk=MappingProxyType(jwk),
    )

    return DidDocument(
        id=did,
        verification_methods=(verification_method,),
        assertion_method=(key_id,),
        authentication=(key_id,) if options.include_authentication else None,
        services=services,
    )
