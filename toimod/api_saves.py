"""Save-folder transcoding and editor wrappers."""

from .main import CipherKeys, toimod


def save_unpack(folder: str, keep_names: bool = False, *, keys: CipherKeys | None = None, silent: bool = False):
    return toimod.save_unpack(folder, keep_names=keep_names, keys=keys, silent=silent)


def save_pack(folder: str, keep_names: bool = False, *, keys: CipherKeys | None = None, silent: bool = False):
    return toimod.save_pack(folder, keep_names=keep_names, keys=keys, silent=silent)


def edit(path: str, launch_editor=None, *, save: bool = False, keys: CipherKeys | None = None) -> bool:
    return toimod.edit_file(path, launch_editor, save=save, keys=keys)
