"""Shared fixtures."""

import pytest

from did_web import KeyPair

RSA_JWK = {
    "kty": "RSA",
    "n": "sXchDaQebHnPiGvyDOAT4saGEUetSyo9MKLOoWFsueri23bOdgWp4Dy1Wl"
    "UzewbgBHod5pcM9H95GQRV3JDXboIRROSBigeC5yjU1hGzHHyXss8UDpre"
    "cbAYxknTcQkhslANGRUZmdTOQ5qTRsLAt6BTYuyvVRdhS8exSZEy_c4gs_",
    "e": "AQAB",
    "alg": "PS256",
    "use": "sig",
}


@pytest.fixture
def rsa_jwk() -> dict:
    return dict(RSA_JWK)


@pytest.fixture(scope="session")
def key_pair() -> KeyPair:
    return KeyPair.generate()
