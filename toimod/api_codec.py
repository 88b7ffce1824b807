"""Byte, name and compression codec convenience wrappers."""

from .main import toimod


def looks_encrypted(data: bytes) -> bool:
    return toimod.looks_encrypted(data)


def encrypt(data: bytes, key: str | bytes = toimod.MOD_KEY) -> bytes:
    return toimod.encrypt_bytes(data, key)


def decrypt(data: bytes, key: str | bytes = toimod.MOD_KEY) -> bytes:
    return toimod.decrypt_bytes(data, key)


def encrypt_save(data: bytes) -> bytes:
    """Compress then encrypt a save payload the way the game writes it."""
    return toimod.encrypt_bytes(toimod.compress(data), toimod.SAVE_KEY)


def decrypt_save(data: bytes) -> bytes:
    payload = toimod.decrypt_bytes(data, toimod.SAVE_KEY)
    if toimod.is_gzip(payload):
        return toimod.decompress(payload)
    return payload


def encrypt_name(name: str, key: str | bytes = toimod.SAVE_KEY) -> str:
    return toimod.encrypt_name(name, key)


def decrypt_name(name: str, key: str | bytes = toimod.SAVE_KEY) -> str:
    return toimod.decrypt_name(name, key)


def compress(data: bytes) -> bytes:
    return toimod.compress(data)


def decompress(data: bytes) -> bytes:
    return toimod.decompress(data)


def try_pretty_print(data: bytes) -> bytes:
    return toimod.try_pretty_print(data)


def try_minify(data: bytes) -> bytes:
    return toimod.try_minify(data)
