#!/usr/bin/env python3
"""
sqlbeat credential helpers

- Server passwords may be stored encrypted in the config file
  (`encrypted_password`, hex encoded)
- Cipher: AES in CFB mode (128-bit segments) with a fixed IV
- Secret: 16, 24 or 32 bytes (AES-128/192/256), read from the SQLBEAT_SECRET
  environment variable, falling back to the built-in default

NOTE: the default secret is public. Deployments that rely on encrypted
passwords should set SQLBEAT_SECRET and encrypt with the same value:

    SQLBEAT_SECRET=... python -m sqlbeat.auth --encrypt 'my password'
"""

import os
from typing import Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

SECRET_ENV_VAR = "SQLBEAT_SECRET"
DEFAULT_SECRET = "github.com/adibendahan/mysqlbeat"
COMMON_IV = bytes(range(16))


class CredentialError(ValueError):
    """An encrypted password could not be decrypted"""


def resolve_secret(secret: Optional[str] = None) -> bytes:
    """Secret passed explicitly, else from the environment, else the default."""
    value = secret or os.environ.get(SECRET_ENV_VAR) or DEFAULT_SECRET
    key = value.encode("utf-8")
    if len(key) not in (16, 24, 32):
        raise CredentialError(f"secret length must be 16, 24 or 32 bytes, got {len(key)}")
    return key


def _cipher(secret: Optional[str]) -> Cipher:
    return Cipher(algorithms.AES(resolve_secret(secret)), modes.CFB(COMMON_IV))


def decrypt_password(encrypted_hex: str, secret: Optional[str] = None) -> str:
    """
    Decrypt a hex encoded password.

    Raises:
        CredentialError: invalid hex, bad secret, or a result that is not UTF-8
    """
    try:
        cipher_text = bytes.fromhex(encrypted_hex.strip())
    except ValueError as e:
        raise CredentialError(f"encrypted password is not valid hex: {e}") from e

    decryptor = _cipher(secret).decryptor()
    plain = decryptor.update(cipher_text) + decryptor.finalize()
    try:
        return plain.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CredentialError("decrypted password is not valid UTF-8 (wrong secret?)") from e


def encrypt_password(password: str, secret: Optional[str] = None) -> str:
    """Encrypt a password into the hex form accepted by `encrypted_password`."""
    encryptor = _cipher(secret).encryptor()
    cipher_text = encryptor.update(password.encode("utf-8")) + encryptor.finalize()
    return cipher_text.hex()


if __name__ == "__main__":
    # Simple CLI helper for preparing config files
    import argparse

    parser = argparse.ArgumentParser(description="sqlbeat password helper")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--encrypt", metavar="PASSWORD", help="print the encrypted form of PASSWORD")
    group.add_argument("--decrypt", metavar="HEX", help="print the plain text of an encrypted password")
    parser.add_argument("--secret", help=f"AES secret (default: ${SECRET_ENV_VAR} or the built-in secret)")
    args = parser.parse_args()

    try:
        if args.encrypt is not None:
            print(encrypt_password(args.encrypt, args.secret))
        else:
            print(decrypt_password(args.decrypt, args.secret))
    except CredentialError as e:
        raise SystemExit(f"ERROR: {e}")
