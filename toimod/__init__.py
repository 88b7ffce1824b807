"""
TOIMOD - pack and unpack Tale of Immortal mods and save folders

The game stores mod exports, excel tables, images and saves behind a fixed
additive "encryption" with a sniffable header; save filenames are also DES
obfuscated and payloads gzip compressed. This package converts between that
packed form and plain, editable JSON trees, and back again without loss.
"""

from .main import *
from .api_codec import (
    compress,
    decompress,
    decrypt,
    decrypt_name,
    decrypt_save,
    encrypt,
    encrypt_name,
    encrypt_save,
    looks_encrypted,
    try_minify,
    try_pretty_print,
)
from .api_projects import (
    decrypt_tree,
    encrypt_tree,
    new_project,
    pack,
    restore_excel,
    unpack,
)
from .api_saves import edit, save_pack, save_unpack
from .version import __version__
