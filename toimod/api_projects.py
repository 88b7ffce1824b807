"""Mod project helpers (pack/unpack, scaffold, tree encryption)."""

import sys

from .main import CipherKeys, toimod


def _with_friendly_interrupt(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except KeyboardInterrupt:
        print("Exiting...", file=sys.stderr)
        raise KeyboardInterrupt("Exiting...") from None


def pack(folder: str, output: str | None = None, *, keys: CipherKeys | None = None, silent: bool = False):
    return _with_friendly_interrupt(toimod.pack, folder, output, keys=keys, silent=silent)


def unpack(folder: str, output: str | None = None, *, keys: CipherKeys | None = None, silent: bool = False):
    return _with_friendly_interrupt(toimod.unpack, folder, output, keys=keys, silent=silent)


def new_project(name: str, parent: str = ".", author: str = toimod.DEFAULT_AUTHOR):
    return toimod.new_project(name, parent, author)


def restore_excel(folder: str, *, keys: CipherKeys | None = None):
    return _with_friendly_interrupt(toimod.restore_excel, folder, keys)


def encrypt_tree(folder: str, key: str | bytes = toimod.MOD_KEY) -> int:
    return _with_friendly_interrupt(toimod.encrypt_tree, folder, key)


def decrypt_tree(folder: str, key: str | bytes = toimod.MOD_KEY) -> int:
    return _with_friendly_interrupt(toimod.decrypt_tree, folder, key)
