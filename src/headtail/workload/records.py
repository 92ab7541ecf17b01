import base64
import random
from typing import Optional


def create_record(size: int, seed: Optional[int] = None) -> bytes:
    prng = random.Random(seed)
    return prng.randbytes(size)


def encode_record(record: bytes) -> str:
    return base64.b64encode(record).decode("ascii")


def decode_record(encoded: str) -> bytes:
    return base64.b64decode(encoded.encode("ascii"), validate=True)
