"""Content tags written into frame headers.

A tag is a 64-bit BLAKE2b digest of a file's bytes, rendered in decimal.
It is only an annotation: nothing about the path or the archive goes into it,
and it is not meant to resist deliberate tampering.
"""

import hashlib

TAG_DIGEST_SIZE = 8


def _new_hash() -> "hashlib._Hash":
    return hashlib.blake2b(digest_size=TAG_DIGEST_SIZE)


def compute_tag(data: bytes) -> int:
    h = _new_hash()
    h.update(data)
    return int.from_bytes(h.digest(), "big")


def format_tag(tag: int) -> str:
    return str(tag)
