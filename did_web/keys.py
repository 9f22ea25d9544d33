"""RSA key pair and self-signed certificate for a did:web identity.

Security:
- Keys are RSA-2048 via ``cryptography`` (OpenSSL bindings)
- Private files are written with mode 0600
- Debug representations only show the key thumbprint, never private numbers
- A failed certificate build is an error; no placeholder is ever produced
"""

import base64
import datetime
import json
import os
from pathlib import Path
from typing import Any, Self

import structlog
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from did_web.canonical import hash_canonical
from did_web.did import CERTIFICATE_CHAIN_FILENAME
from did_web.errors import KeyMaterialError

logger = structlog.get_logger(__name__)

DEFAULT_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
CERTIFICATE_VALIDITY_DAYS = 365

# RSA-PSS with SHA-256, advertised in the JWK
JWK_ALGORITHM = "PS256"

PRIVATE_KEY_JSON = "private-key.json"
PUBLIC_KEY_JSON = "public-key.json"
PRIVATE_KEY_PEM = "private-key.pem"
PUBLIC_KEY_PEM = "public-key.pem"

DEFAULT_SUBJECT = x509.Name(
    [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, "State"),
        x509.NameAttribute(NameOID.LOCALITY_NAME, "City"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Organization"),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "DID Demo"),
        x509.NameAttribute(NameOID.COMMON_NAME, "did-web-demo"),
    ]
)


def _b64url_uint(value: int) -> str:
    """Base64url-encode an unsigned integer without padding (RFC 7518)."""
    length = max(1, (value.bit_length() + 7) // 8)
    raw = value.to_bytes(length, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def build_certificate(
    private_key: rsa.RSAPrivateKey,
    subject: x509.Name = DEFAULT_SUBJECT,
    validity_days: int = CERTIFICATE_VALIDITY_DAYS,
) -> x509.Certificate:
    """Create a self-signed CA certificate for ``private_key``."""
    public_key = private_key.public_key()
    ski = x509.SubjectKeyIdentifier.from_public_key(public_key)
    now = datetime.datetime.now(datetime.timezone.utc)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=validity_days))
        .add_extension(ski, critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    )

    try:
        return builder.sign(private_key, hashes.SHA256())
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyMaterialError(f"certificate signing failed: {exc}") from exc


class KeyPair:
    """An RSA key pair with its self-signed certificate chain.

    The public half is exported as a JWK for the DID document; the
    certificate is what the JWK's x5u points at.
    """

    __slots__ = ("_private_key", "_certificate")

    def __init__(self, private_key: rsa.RSAPrivateKey, certificate: x509.Certificate) -> None:
        self._private_key = private_key
        self._certificate = certificate

    @classmethod
    def generate(cls, key_size: int = DEFAULT_KEY_SIZE) -> Self:
        """Generate a new RSA key and a certificate for it.

        Raises:
            KeyMaterialError: If the key or certificate cannot be created.
        """
        try:
            private_key = rsa.generate_private_key(
                public_exponent=PUBLIC_EXPONENT,
                key_size=key_size,
            )
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise KeyMaterialError(f"RSA key generation failed: {exc}") from exc

        certificate = build_certificate(private_key)
        logger.info("key_pair_generated", key_size=key_size)
        return cls(private_key, certificate)

    @classmethod
    def load(cls, directory: Path) -> Self:
        """Load a key pair previously written by :meth:`save`.

        Raises:
            KeyMaterialError: If a file is missing or unreadable.
        """
        directory = Path(directory)
        try:
            private_pem = (directory / PRIVATE_KEY_PEM).read_bytes()
            cert_pem = (directory / CERTIFICATE_CHAIN_FILENAME).read_bytes()
        except OSError as exc:
            raise KeyMaterialError(f"cannot read key files in {directory}: {exc}") from exc

        try:
            private_key = serialization.load_pem_private_key(private_pem, password=None)
            certificate = x509.load_pem_x509_certificate(cert_pem)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyMaterialError(f"invalid key material in {directory}: {exc}") from exc

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyMaterialError("private key is not an RSA key")
        if certificate.public_key().public_numbers() != private_key.public_key().public_numbers():
            raise KeyMaterialError("certificate does not match the private key")

        return cls(private_key, certificate)

    @property
    def certificate(self) -> x509.Certificate:
        return self._certificate

    @property
    def public_jwk(self) -> dict[str, Any]:
        """Public key as a JWK: kty, n, e, alg, use."""
        numbers = self._private_key.public_key().public_numbers()
        return {
            "kty": "RSA",
            "n": _b64url_uint(numbers.n),
            "e": _b64url_uint(numbers.e),
            "alg": JWK_ALGORITHM,
            "use": "sig",
        }

    @property
    def private_jwk(self) -> dict[str, Any]:
        """Private key as a JWK.

        Warning: contains the private exponent and primes.
        """
        numbers = self._private_key.private_numbers()
        public = numbers.public_numbers
        return {
            "kty": "RSA",
            "n": _b64url_uint(public.n),
            "e": _b64url_uint(public.e),
            "d": _b64url_uint(numbers.d),
            "p": _b64url_uint(numbers.p),
            "q": _b64url_uint(numbers.q),
            "dp": _b64url_uint(numbers.dmp1),
            "dq": _b64url_uint(numbers.dmq1),
            "qi": _b64url_uint(numbers.iqmp),
            "alg": JWK_ALGORITHM,
        }

    @property
    def thumbprint(self) -> str:
        """RFC 7638 JWK thumbprint (base64url SHA-256)."""
        jwk = self.public_jwk
        required = {"e": jwk["e"], "kty": jwk["kty"], "n": jwk["n"]}
        digest = hash_canonical(required)
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def private_key_pem(self) -> bytes:
        """PKCS#8 PEM of the private key, unencrypted."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_key_pem(self) -> bytes:
        """SubjectPublicKeyInfo PEM of the public key."""
        return self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def certificate_pem(self) -> bytes:
        return self._certificate.public_bytes(serialization.Encoding.PEM)

    def save(self, directory: Path) -> list[Path]:
        """Write keys and certificate chain into ``directory``.

        Returns:
            The paths written, private files first.

        Raises:
            KeyMaterialError: If a file cannot be written.
        """
        directory = Path(directory)
        files = [
            (PRIVATE_KEY_JSON, _json_bytes(self.private_jwk), True),
            (PRIVATE_KEY_PEM, self.private_key_pem(), True),
            (PUBLIC_KEY_JSON, _json_bytes(self.public_jwk), False),
            (PUBLIC_KEY_PEM, self.public_key_pem(), False),
            (CERTIFICATE_CHAIN_FILENAME, self.certificate_pem(), False),
        ]

        written = []
        try:
            directory.mkdir(parents=True, exist_ok=True)
            for name, content, private in files:
                path = directory / name
                _write_file(path, content, mode=0o600 if private else 0o644)
                written.append(path)
        except OSError as exc:
            raise KeyMaterialError(f"cannot write key files to {directory}: {exc}") from exc

        logger.info("key_pair_saved", directory=str(directory), files=len(written))
        return written

    def __repr__(self) -> str:
        return f"KeyPair(thumbprint={self.thumbprint[:8]}...)"


def _json_bytes(value: dict[str, Any]) -> bytes:
    return json.dumps(value, indent=2).encode("utf-8")


def _write_file(path: Path, content: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as handle:
        handle.write(content)
    os.chmod(path, mode)


def keys_exist(directory: Path) -> bool:
    """True if a saved key pair is present in ``directory``."""
    directory = Path(directory)
    return (directory / PRIVATE_KEY_PEM).exists() or (directory / PUBLIC_KEY_JSON).exists()


def load_public_jwk(directory: Path) -> dict[str, Any]:
    """Read the public JWK written by :meth:`KeyPair.save`.

    Raises:
        KeyMaterialError: If the file is missing or not a JSON object.
    """
    path = Path(directory) / PUBLIC_KEY_JSON
    try:
        value = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise KeyMaterialError(
            f"public key not found at {path}; run 'did-web generate-keys' first"
        ) from exc
    except (OSError, ValueError) as exc:
        raise KeyMaterialError(f"cannot read public key {path}: {exc}") from exc

    if not isinstance(value, dict):
        raise KeyMaterialError(f"public key {path} is not a JSON object")
    return value
