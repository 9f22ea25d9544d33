"""Command line entry point: ``did-web``.

    did-web generate-keys              create keys/ with an RSA key and certificate
    did-web create-did example.com     build and publish the DID document
    did-web serve                      host the published documents

DOMAIN, DID_PATH, PORT and friends are read from the environment (see
did_web.config.Settings); command line flags take precedence.
"""

import argparse
import sys
from collections.abc import Callable, Sequence

import structlog

from did_web.config import Settings
from did_web.did import CERTIFICATE_CHAIN_FILENAME, resolve
from did_web.document import BuildOptions, ServiceEndpoint, build
from did_web.errors import DidWebError, InvalidInputError, KeyMaterialError
from did_web.keys import KeyPair, keys_exist, load_public_jwk
from did_web.logging_conf import configure_logging
from did_web.publish import Publisher
from did_web.server import serve as run_server

logger = structlog.get_logger(__name__)

Prompt = Callable[[str], str]


def _parse_service(value: str) -> ServiceEndpoint:
    service_type, sep, endpoint = value.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected TYPE=URL, got {value!r}")
    return ServiceEndpoint(type=service_type.strip(), endpoint=endpoint.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="did-web",
        description="Generate, publish and serve did:web documents.",
    )
    parser.add_argument("--root", help="Directory the documents are published into")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate-keys", help="Generate an RSA key pair and certificate")
    generate.add_argument("--force", action="store_true", help="Overwrite existing keys")

    create = subparsers.add_parser("create-did", help="Build and publish the DID document")
    create.add_argument("domain", nargs="?", help="Domain without https:// (default: $DOMAIN)")
    create.add_argument("--path", dest="did_path", help='Optional path, e.g. "tenant/user"')
    create.add_argument(
        "--authentication",
        action="store_true",
        help="Also list the key under authentication",
    )
    create.add_argument(
        "--service",
        dest="services",
        action="append",
        type=_parse_service,
        default=[],
        metavar="TYPE=URL",
        help="Add a service endpoint (repeatable)",
    )
    create.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Prompt for every option",
    )

    serve = subparsers.add_parser("serve", help="Serve published DID documents over HTTP")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    return parser


def _yes(prompt: Prompt, question: str) -> bool:
    return prompt(question).strip().lower() == "y"


def _ask_options(prompt: Prompt, args: argparse.Namespace, settings: Settings) -> None:
    """Fill ``args`` interactively, the way the setup wizard asks."""
    if not args.domain and not settings.domain:
        print("Enter your domain (without https://), e.g. example.com")
        args.domain = prompt("Domain: ")
        if not args.domain or not args.domain.strip():
            raise InvalidInputError("domain is required")

    if args.did_path is None and settings.did_path is None:
        if _yes(prompt, "Do you want to add a path? (y/n): "):
            args.did_path = prompt('Enter path (e.g., "user" or "tenant/user"): ')

    if not args.authentication:
        args.authentication = _yes(prompt, "Add authentication method? (y/n): ")

    if not args.services and _yes(prompt, "Add service endpoints? (y/n): "):
        while True:
            service_type = prompt('  Service type (e.g., "LinkedDomains"): ')
            endpoint = prompt("  Service endpoint URL: ")
            args.services.append(ServiceEndpoint(type=service_type.strip(), endpoint=endpoint.strip()))
            if not _yes(prompt, "  Add another service? (y/n): "):
                break


def generate_keys(args: argparse.Namespace, settings: Settings) -> int:
    if keys_exist(settings.keys_path) and not args.force:
        raise KeyMaterialError(
            f"keys already exist in {settings.keys_path}; pass --force to replace them"
        )

    key_pair = KeyPair.generate()
    for path in key_pair.save(settings.keys_path):
        print(f"  - {path}")
    print("Next step: did-web create-did <domain>")
    return 0


def create_did(args: argparse.Namespace, settings: Settings, prompt: Prompt = input) -> int:
    if args.interactive:
        _ask_options(prompt, args, settings)

    domain = args.domain or settings.domain
    did_path = args.did_path if args.did_path is not None else settings.did_path
    if not domain:
        raise InvalidInputError("domain is required (argument, $DOMAIN or --interactive)")

    public_jwk = load_public_jwk(settings.keys_path)

    resolution = resolve(domain, did_path)
    logger.info("creating_did", did=resolution.did)

    options = BuildOptions(
        include_authentication=args.authentication,
        services=tuple(args.services),
    )
    document = build(resolution.did, public_jwk, resolution.x5u, options)

    publisher = Publisher(
        settings.root_dir,
        archive_dir=settings.archive_dir,
        keys_dir=settings.keys_dir,
    )
    files = publisher.publish(
        document,
        resolution,
        certificate_chain=settings.keys_path / CERTIFICATE_CHAIN_FILENAME,
    )

    print(f"DID: {resolution.did}")
    print("Generated files:")
    for path in (files.archive_document, files.document, files.certificate_chain):
        print(f"  - {path}")
    print()
    print(document.to_json())
    print()
    print("Next steps:")
    print("  1. did-web serve")
    print(f"  2. expose the server as https://{domain.strip()}")
    print(f"  3. resolve at https://dev.uniresolver.io/#{resolution.did}")
    return 0


def serve(args: argparse.Namespace, settings: Settings) -> int:
    run_server(settings)
    return 0


COMMANDS = {
    "generate-keys": generate_keys,
    "create-did": create_did,
    "serve": serve,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {}
    if args.root:
        overrides["root_dir"] = args.root
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    settings = Settings(**overrides)

    configure_logging(settings)

    try:
        return COMMANDS[args.command](args, settings)
    except DidWebError as exc:
        logger.error("command_failed", command=args.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
