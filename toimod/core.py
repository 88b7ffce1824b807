# TOIMOD MOD & SAVE TRANSCODER ->

import os as _os_module
from dataclasses import dataclass as _dataclass


class ToimodError(Exception):
    """Base class for every failure the engine reports on purpose."""


class EmptyKeyError(ToimodError, ValueError):
    """Raised when a cipher is invoked with a zero-length key."""


class MalformedEncodingError(ToimodError, ValueError):
    """Raised when a filename is not a valid name-cipher encoding."""


class MissingArtifactError(ToimodError, FileNotFoundError):
    """Raised when a required packed or editable record is absent."""


class MissingMetadataError(ToimodError, FileNotFoundError):
    """Raised when save-pack runs without the sidecar written by save-unpack."""


class CorruptArtifactError(ToimodError, ValueError):
    """Raised when a record parses but lacks the fields the game needs."""


class InvalidJsonError(ToimodError, ValueError):
    """Raised by the strict JSON loader; the try_* helpers downgrade it."""


class EditorError(ToimodError, RuntimeError):
    """Raised when the external editor exits with a non-zero status."""


@_dataclass(frozen=True)
class CipherKeys:
    mod: str
    save: str


@_dataclass
class SaveMetadataEntry:
    is_file_encrypted: bool = False
    is_original_name_encrypted: bool = False
    is_name_decrypted: bool = False
    is_file_compressed: bool = False

    _FIELDS = (
        ("isFileEncrypted", "is_file_encrypted"),
        ("isOriginalNameEncrypted", "is_original_name_encrypted"),
        ("isNameDecrypted", "is_name_decrypted"),
        ("isFileCompressed", "is_file_compressed"),
    )

    def to_json(self) -> "dict[str, bool]":
        return {json_name: getattr(self, attr) for json_name, attr in self._FIELDS}

    @classmethod
    def from_json(cls, raw, label: str = "entry") -> "SaveMetadataEntry":
        if not isinstance(raw, dict):
            raise CorruptArtifactError(f"Save metadata {label} is not an object")
        values = {}
        for json_name, attr in cls._FIELDS:
            value = raw.get(json_name)
            if value is None:
                # older sidecars lack the flag; their encrypted payloads were all gzip
                value = json_name == "isFileCompressed" and bool(raw.get("isFileEncrypted"))
            if not isinstance(value, bool):
                raise CorruptArtifactError(f"Save metadata {label}: {json_name} must be a boolean")
            values[attr] = value
        entry = cls(**values)
        if entry.is_name_decrypted and not entry.is_original_name_encrypted:
            raise CorruptArtifactError(
                f"Save metadata {label}: isNameDecrypted requires isOriginalNameEncrypted"
            )
        return entry


class toimod:
    import base64
    import gzip
    import hashlib
    import json
    import pathlib
    import secrets
    import shlex
    import shutil
    import string
    import subprocess
    import sys
    import tempfile
    import typing
    import zlib
    from datetime import datetime, timedelta, timezone
    from cryptography.hazmat.primitives import padding
    from cryptography.hazmat.primitives.ciphers import Cipher, modes
    from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
    try:
        import colorama
        colorama.init()  # Initialize colorama for cross-platform color support
    except ImportError:
        pass  # Colorama is optional

    @staticmethod
    def _env_flag(name: str) -> bool:
        raw = _os_module.getenv(name)
        if not raw:
            return False
        return raw.strip().lower() in ("1", "true", "yes", "on")

    ENGINE_VERSION = "1.0.0"

    # fixed by the game client
    VALIDATION_KEY = "2a;ad.,&fSf^SX.,:12@D"
    MOD_KEY = ",.?<aH.5:.L;_=-A%K/DF4s"
    SAVE_KEY = "5:.A%KL;,.?<aH._=-/DF4s"
    HEADER = (lambda text: bytes(b ^ 3 for b in text.encode("utf-8")))(VALIDATION_KEY)
    DEFAULT_KEYS = CipherKeys(mod=MOD_KEY, save=SAVE_KEY)

    NAME_BLOCK_BITS = 64
    NAME_UNSAFE_CHAR = "/"
    NAME_SAFE_CHAR = "@"
    GZIP_MAGIC = b"\x1f\x8b"

    EXPORT_FILE = "ModExportData.cache"
    PROJECT_FILE = "ModProject.cache"
    MOD_DATA_FILE = "ModData.cache"
    SAVE_METADATA_FILE = "SaveMetadata.json"
    ASSETS_DIR = "ModAssets"
    CODE_DIR = "ModCode"
    CODE_OUTPUT_DIR = "dll"
    EXCEL_DIR = "ModExcel"
    ITEMS_DIR = "ModItems"
    TMP_SUFFIX = ".toimod-tmp"
    DEBUG_SYMBOL_SUFFIXES = frozenset({".pdb"})
    JSON_SUFFIXES = frozenset({".json"})
    IMAGE_SUFFIXES = frozenset({".png"})
    TREE_SUFFIXES = frozenset({".cache", ".png", ".json"})
    IMAGE_EXCLUDED_DIRS = frozenset({ASSETS_DIR, CODE_DIR})
    NAMESPACE_PREFIX = "MOD_"
    SOLE_ID_LENGTH = 6
    DEFAULT_AUTHOR = "gse orca"
    DEFAULT_VERSION = "v 1.0.0"
    MOD_DATA_GROUPS = (
        "roleCreateFeature",
        "fortuitousEvent",
        "npcCondition",
        "mapPosition",
        "worldFortuitousEventBase",
        "itemProps",
        "taskBase",
        "dramaDialogue",
        "dramaNpc",
        "npcAddWorld",
        "schoolSmall",
        "schoolInitScale",
        "schoolCustom",
        "horseModel",
        "dungeonBase",
    )
    DOTNET_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)

    # _SHIFT_TABLES[s] adds s (mod 256) to every byte through bytes.translate
    _SHIFT_TABLES: typing.ClassVar[tuple[bytes, ...]] = tuple(
        bytes((value + shift) & 0xFF for value in range(256)) for shift in range(256)
    )
    _SILENT_MODE: typing.ClassVar[bool] = _env_flag("TOIMOD_SILENT")

    # ------------------------------------------------------------------
    # console output
    # ------------------------------------------------------------------

    @staticmethod
    def _log(message: str) -> None:
        if toimod._SILENT_MODE:
            return
        print(message)

    @staticmethod
    def _warn(message: str) -> None:
        print(f"WARN: {message}", file=toimod.sys.stderr)

    # ------------------------------------------------------------------
    # stream codec
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_key(key: "toimod.typing.Union[str, bytes, bytearray, memoryview]") -> bytes:
        if isinstance(key, str):
            key_bytes = key.encode("utf-8")
        else:
            key_bytes = bytes(key)
        if not key_bytes:
            raise EmptyKeyError("Key must not be empty.")
        return key_bytes

    @staticmethod
    def _roll_key(data: bytes, key: bytes, sign: int) -> bytes:
        buf = bytearray(data)
        width = len(key)
        for offset in range(min(width, len(buf))):
            table = toimod._SHIFT_TABLES[(sign * key[offset]) & 0xFF]
            buf[offset::width] = buf[offset::width].translate(table)
        return bytes(buf)

    @staticmethod
    def looks_encrypted(data: bytes) -> bool:
        header = toimod.HEADER
        return len(data) >= len(header) and bytes(data[:len(header)]) == header

    @staticmethod
    def encrypt_bytes(data: bytes, key) -> bytes:
        """Apply the rolling additive key and prepend the header.

        Already-packed input is returned unchanged, so callers may apply this
        to whole trees without tracking what was packed before.
        """
        data = bytes(data)
        if toimod.looks_encrypted(data):
            return data
        key_bytes = toimod._coerce_key(key)
        return toimod.HEADER + toimod._roll_key(data, key_bytes, 1)

    @staticmethod
    def decrypt_bytes(data: bytes, key) -> bytes:
        """Strip the header and subtract the rolling key; plain input passes through."""
        data = bytes(data)
        if not toimod.looks_encrypted(data):
            return data
        key_bytes = toimod._coerce_key(key)
        return toimod._roll_key(data[len(toimod.HEADER):], key_bytes, -1)

    # ------------------------------------------------------------------
    # name cipher
    # ------------------------------------------------------------------

    @staticmethod
    def _name_cipher(key) -> "toimod.Cipher":
        digest = toimod.hashlib.md5(toimod._coerce_key(key), usedforsecurity=False).digest()
        # TripleDES with K1 == K2 == K3 is single DES
        return toimod.Cipher(toimod.TripleDES(digest[:8] * 3), toimod.modes.CBC(digest[8:16]))

    @staticmethod
    def encrypt_name(text: str, key) -> str:
        padder = toimod.padding.PKCS7(toimod.NAME_BLOCK_BITS).padder()
        padded = padder.update(text.encode("utf-8")) + padder.finalize()
        encryptor = toimod._name_cipher(key).encryptor()
        blob = encryptor.update(padded) + encryptor.finalize()
        encoded = toimod.base64.b64encode(blob).decode("ascii")
        return encoded.replace(toimod.NAME_UNSAFE_CHAR, toimod.NAME_SAFE_CHAR)

    @staticmethod
    def decrypt_name(text: str, key) -> str:
        """Reverse encrypt_name.

        Raises MalformedEncodingError for anything that is not a name produced
        by encrypt_name; callers read that as "this name was never encrypted".
        """
        block_bytes = toimod.NAME_BLOCK_BITS // 8
        try:
            raw = text.replace(toimod.NAME_SAFE_CHAR, toimod.NAME_UNSAFE_CHAR).encode("ascii")
            blob = toimod.base64.b64decode(raw, validate=True)
        except ValueError as exc:
            raise MalformedEncodingError(f"Not a name-encoded string: {text!r}") from exc
        if not blob or len(blob) % block_bytes:
            raise MalformedEncodingError(f"Not a name-encoded string: {text!r}")
        decryptor = toimod._name_cipher(key).decryptor()
        padded = decryptor.update(blob) + decryptor.finalize()
        try:
            unpadder = toimod.padding.PKCS7(toimod.NAME_BLOCK_BITS).unpadder()
            name = (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
        except ValueError as exc:
            raise MalformedEncodingError(f"Not a name-encoded string: {text!r}") from exc
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise MalformedEncodingError(f"Decoded name is not a valid filename: {text!r}")
        return name

    # ------------------------------------------------------------------
    # compression
    # ------------------------------------------------------------------

    @staticmethod
    def is_gzip(data: bytes) -> bool:
        return bytes(data[:2]) == toimod.GZIP_MAGIC

    @staticmethod
    def compress(data: bytes) -> bytes:
        # mtime=0 keeps repeated packs byte-identical
        return toimod.gzip.compress(bytes(data), mtime=0)

    @staticmethod
    def decompress(data: bytes) -> bytes:
        try:
            return toimod.gzip.decompress(bytes(data))
        except (OSError, EOFError, toimod.zlib.error) as exc:
            raise CorruptArtifactError(f"Payload is not valid gzip data: {exc}") from exc

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load_json(data: bytes) -> "toimod.typing.Any":
        try:
            return toimod.json.loads(bytes(data).decode("utf-8-sig"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidJsonError(str(exc)) from exc

    @staticmethod
    def _dump_json(value, *, pretty: bool = True) -> bytes:
        if pretty:
            text = toimod.json.dumps(value, indent=2, ensure_ascii=False)
        else:
            text = toimod.json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        return text.encode("utf-8")

    @staticmethod
    def try_pretty_print(data: bytes) -> bytes:
        """Re-indent JSON payloads for humans.

        Deliberately lossy fallback: anything that does not parse as JSON is
        returned byte-for-byte, so binary saves survive the editable form.
        """
        try:
            value = toimod._load_json(data)
        except InvalidJsonError:
            return bytes(data)
        return toimod._dump_json(value)

    @staticmethod
    def try_minify(data: bytes) -> bytes:
        try:
            value = toimod._load_json(data)
        except InvalidJsonError:
            return bytes(data)
        return toimod._dump_json(value, pretty=False)

    @staticmethod
    def _json_object(node, label: str) -> "dict":
        if not isinstance(node, dict):
            raise CorruptArtifactError(f"{label} is not a JSON object")
        return node

    @staticmethod
    def _json_bool(node: dict, name: str, default: bool = False) -> bool:
        value = node.get(name)
        return value if isinstance(value, bool) else default

    @staticmethod
    def _json_str(node: dict, name: str) -> "toimod.typing.Optional[str]":
        value = node.get(name)
        return value if isinstance(value, str) and value else None

    @staticmethod
    def _read_record(path: "toimod.pathlib.Path", key) -> "toimod.typing.Any":
        data = toimod.decrypt_bytes(path.read_bytes(), key)
        try:
            return toimod._load_json(data)
        except InvalidJsonError as exc:
            raise CorruptArtifactError(f"{path.name} is not valid JSON: {exc}") from exc

    # ------------------------------------------------------------------
    # filesystem helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_path(path_like: "toimod.typing.Union[str, toimod.pathlib.Path]") -> "toimod.pathlib.Path":
        if isinstance(path_like, toimod.pathlib.Path):
            path = path_like
        else:
            path = toimod.pathlib.Path(str(path_like))
        path = path.expanduser()
        try:
            return path.resolve(strict=False)
        except OSError:
            return path

    @staticmethod
    def _ensure_existing_file(path: "toimod.pathlib.Path") -> None:
        if not path.exists() or not path.is_file():
            raise MissingArtifactError(f"Input file not found: {path}")

    @staticmethod
    def _ensure_existing_dir(path: "toimod.pathlib.Path") -> None:
        if not path.is_dir():
            raise MissingArtifactError(f"Folder not found: {path}")

    @staticmethod
    def _iter_files(
        root: "toimod.pathlib.Path",
        suffixes: "toimod.typing.Optional[frozenset]" = None
    ) -> "list[toimod.pathlib.Path]":
        found = []
        for path in root.rglob("*"):
            if not path.is_file() or path.name.endswith(toimod.TMP_SUFFIX):
                continue
            if suffixes is not None and path.suffix.lower() not in suffixes:
                continue
            found.append(path)
        return sorted(found)

    @staticmethod
    def _in_subtree(root: "toimod.pathlib.Path", path: "toimod.pathlib.Path", folders) -> bool:
        parts = path.relative_to(root).parts
        return len(parts) > 1 and parts[0] in folders

    @staticmethod
    def _relative_posix(root: "toimod.pathlib.Path", path: "toimod.pathlib.Path") -> str:
        return path.relative_to(root).as_posix()

    @staticmethod
    def _write_file(path: "toimod.pathlib.Path", data: bytes) -> None:
        temp_path = path.with_name(path.name + toimod.TMP_SUFFIX)
        temp_path.write_bytes(data)
        _os_module.replace(temp_path, path)

    @staticmethod
    def _remove_path(path: "toimod.pathlib.Path") -> None:
        try:
            if path.is_dir():
                toimod.shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            pass

    @staticmethod
    def _check_output_location(root: "toimod.pathlib.Path", output: "toimod.pathlib.Path") -> None:
        if root in output.parents:
            raise ValueError(f"Output folder {output} must not be inside {root}")

    # ------------------------------------------------------------------
    # project records
    # ------------------------------------------------------------------

    @staticmethod
    def namespace_for(project: dict) -> "toimod.typing.Optional[str]":
        sole_id = toimod._json_str(project, "soleID")
        return f"{toimod.NAMESPACE_PREFIX}{sole_id}" if sole_id else None

    @staticmethod
    def generate_sole_id(length: int = SOLE_ID_LENGTH) -> str:
        alphabet = toimod.string.ascii_letters + toimod.string.digits
        return "".join(toimod.secrets.choice(alphabet) for _ in range(length))

    @staticmethod
    def _random_int32() -> int:
        return toimod.secrets.randbelow(1 << 32) - (1 << 31)

    @staticmethod
    def _dotnet_ticks(moment=None) -> int:
        moment = moment or toimod.datetime.now(toimod.timezone.utc)
        return (moment - toimod.DOTNET_EPOCH) // toimod.timedelta(microseconds=1) * 10

    @staticmethod
    def build_mod_data(namespace: "toimod.typing.Optional[str]") -> dict:
        """Seed record with every group container empty."""
        mod_data: dict = {}
        for group in toimod.MOD_DATA_GROUPS:
            if group == "fortuitousEvent":
                mod_data[group] = {
                    "cdGroup": {"value": toimod._random_int32()},
                    "groupName": [],
                    "items": [],
                }
            else:
                mod_data[group] = {"groupName": [], "items": []}
        mod_data["excelMID"] = toimod._random_int32()
        mod_data["modNamespace"] = namespace
        return mod_data

    @staticmethod
    def build_project(sole_id: str, name: str, author: str = DEFAULT_AUTHOR) -> dict:
        return {
            "soleID": sole_id,
            "createTicks": toimod._dotnet_ticks(),
            "name": f"Mod {sole_id} {name}",
            "author": author,
            "desc": f"Creation Time {toimod.datetime.now():%Y_%m_%d_%H_%M_%S}",
            "ver": toimod.DEFAULT_VERSION,
            "autoSave": True,
            "isCreateNPC": True,
            "exportVer": 0,
            "accountID": 0,
            "publishedFileID": 0,
            "visibleState": 0,
            "openCode": 0,
            "curUpdateDesc": None,
            "tags": [],
            "addPreviewPaths": [],
            "excelEncrypt": False,
        }

    @staticmethod
    def new_project(
        name: str,
        parent: "toimod.typing.Union[str, toimod.pathlib.Path]" = ".",
        author: str = DEFAULT_AUTHOR
    ) -> "toimod.pathlib.Path":
        if not name or not name.strip():
            raise ValueError("Mod name must not be empty")
        if "/" in name or "\\" in name:
            raise ValueError(f"Mod name must not contain path separators: {name!r}")
        sole_id = toimod.generate_sole_id()
        root = toimod._normalize_path(parent) / f"Mod_{sole_id} {name}"
        if root.exists():
            raise FileExistsError(f"Folder '{root}' already exists.")
        root.mkdir(parents=True)
        (root / toimod.ASSETS_DIR).mkdir()
        (root / toimod.CODE_DIR / toimod.CODE_OUTPUT_DIR).mkdir(parents=True)
        (root / toimod.EXCEL_DIR).mkdir()
        namespace = f"{toimod.NAMESPACE_PREFIX}{sole_id}"
        toimod._write_file(root / toimod.MOD_DATA_FILE, toimod._dump_json(toimod.build_mod_data(namespace)))
        project = toimod.build_project(sole_id, name, author)
        toimod._write_file(root / toimod.PROJECT_FILE, toimod._dump_json(project))
        toimod._log(f"New mod template created at '{root}'")
        return root

    # ------------------------------------------------------------------
    # whole-tree and single-file codec
    # ------------------------------------------------------------------

    @staticmethod
    def encrypt_file(path, key, output=None) -> bytes:
        """Encrypt one file in place, or write the result to a binary stream."""
        path = toimod._normalize_path(path)
        toimod._ensure_existing_file(path)
        data = path.read_bytes()
        result = toimod.encrypt_bytes(data, key)
        if output is not None:
            output.write(result)
        elif result != data:
            toimod._log(f"Encrypting '{path}'")
            toimod._write_file(path, result)
        return result

    @staticmethod
    def decrypt_file(path, key, output=None) -> bytes:
        path = toimod._normalize_path(path)
        toimod._ensure_existing_file(path)
        data = path.read_bytes()
        result = toimod.decrypt_bytes(data, key)
        if output is not None:
            output.write(result)
        elif result != data:
            toimod._log(f"Decrypting '{path}'")
            toimod._write_file(path, result)
        return result

    @staticmethod
    def encrypt_tree(folder, key=MOD_KEY) -> int:
        root = toimod._normalize_path(folder)
        toimod._ensure_existing_dir(root)
        changed = 0
        for path in toimod._iter_files(root, toimod.TREE_SUFFIXES):
            if toimod._in_subtree(root, path, (toimod.ASSETS_DIR,)):
                continue
            data = path.read_bytes()
            if toimod.looks_encrypted(data):
                continue
            toimod._log(f"Encrypting '{path}'")
            toimod._write_file(path, toimod.encrypt_bytes(data, key))
            changed += 1
        return changed

    @staticmethod
    def decrypt_tree(folder, key=MOD_KEY) -> int:
        root = toimod._normalize_path(folder)
        toimod._ensure_existing_dir(root)
        changed = 0
        for path in toimod._iter_files(root):
            data = path.read_bytes()
            if not toimod.looks_encrypted(data):
                continue
            toimod._log(f"Decrypting '{path}'")
            toimod._write_file(path, toimod.decrypt_bytes(data, key))
            changed += 1
        return changed

    @staticmethod
    def restore_excel(folder, keys: "toimod.typing.Optional[CipherKeys]" = None) -> None:
        """Turn off excelEncrypt in a packed mod and leave its excel JSON readable."""
        keys = keys or toimod.DEFAULT_KEYS
        root = toimod._normalize_path(folder)
        toimod._ensure_existing_dir(root)
        export_path = root / toimod.EXPORT_FILE
        if export_path.is_file():
            export = toimod._json_object(toimod._read_record(export_path, keys.mod), toimod.EXPORT_FILE)
            project = export.get("projectData")
            if isinstance(project, dict) and toimod._json_bool(project, "excelEncrypt"):
                toimod._log(f"Disabling excelEncrypt in '{export_path}'")
                project["excelEncrypt"] = False
                blob = toimod.encrypt_bytes(toimod._dump_json(export), keys.mod)
                toimod._write_file(export_path, blob)
            else:
                toimod._log(f"excelEncrypt is already disabled in '{export_path}'")
        for path in toimod._iter_files(root, toimod.IMAGE_SUFFIXES):
            if toimod._in_subtree(root, path, (toimod.ASSETS_DIR,)):
                continue
            data = path.read_bytes()
            if toimod.looks_encrypted(data):
                continue
            toimod._log(f"Encrypting '{path}'")
            toimod._write_file(path, toimod.encrypt_bytes(data, keys.mod))
        for path in toimod._iter_files(root, toimod.JSON_SUFFIXES):
            if toimod._in_subtree(root, path, (toimod.ASSETS_DIR,)):
                continue
            data = path.read_bytes()
            if not toimod.looks_encrypted(data):
                continue
            toimod._log(f"Decrypting '{path}'")
            toimod._write_file(path, toimod.decrypt_bytes(data, keys.mod))

    # ------------------------------------------------------------------
    # mod project pipelines
    # ------------------------------------------------------------------

    class PackPipeline:
        """Assembles an editable mod project into the layout the game loads.

        Every write is guarded by looks_encrypted() or an existence check, so
        a pack interrupted half-way can simply be run again.
        """

        def __init__(self, root, output=None, keys: "toimod.typing.Optional[CipherKeys]" = None):
            self.root = toimod._normalize_path(root)
            self.output = toimod._normalize_path(output) if output else self.root
            self.keys = keys or toimod.DEFAULT_KEYS

        def run(self) -> "toimod.pathlib.Path":
            toimod._ensure_existing_dir(self.root)
            project, export = self._resolve_records()
            export["projectData"] = project
            export["modNamespace"] = self._resolve_namespace(project, export)
            items = self._gather_items()
            if items is not None:
                export["items"] = items
            else:
                export.setdefault("items", [])

            self._materialize_output()
            out = self.output
            export_path = out / toimod.EXPORT_FILE
            toimod._log(f"Writing '{export_path}'")
            toimod._write_file(export_path, toimod.encrypt_bytes(toimod._dump_json(export), self.keys.mod))
            for name in (toimod.PROJECT_FILE, toimod.MOD_DATA_FILE, toimod.ITEMS_DIR):
                target = out / name
                if target.exists():
                    toimod._log(f"Removing '{target}'")
                    toimod._remove_path(target)

            self._sync_excel(toimod._json_bool(project, "excelEncrypt"))
            self._encrypt_images()
            toimod._log("Pack completed.")
            return out

        def _resolve_records(self) -> "toimod.typing.Tuple[dict, dict]":
            project_path = self.root / toimod.PROJECT_FILE
            export_path = self.root / toimod.EXPORT_FILE
            export: dict = {}
            if export_path.is_file():
                try:
                    export = toimod._json_object(
                        toimod._read_record(export_path, self.keys.mod), toimod.EXPORT_FILE
                    )
                except CorruptArtifactError as exc:
                    if not project_path.is_file():
                        raise
                    toimod._warn(f"Ignoring unreadable {toimod.EXPORT_FILE}: {exc}")
            if project_path.is_file():
                project = toimod._json_object(
                    toimod._read_record(project_path, self.keys.mod), toimod.PROJECT_FILE
                )
            elif export_path.is_file():
                project = toimod._json_object(export.get("projectData"), f"{toimod.EXPORT_FILE} projectData")
            else:
                raise MissingArtifactError(
                    f"Missing required {toimod.PROJECT_FILE} or {toimod.EXPORT_FILE} in {self.root}"
                )
            return project, export

        def _resolve_namespace(self, project: dict, export: dict) -> "toimod.typing.Optional[str]":
            mod_data_path = self.root / toimod.MOD_DATA_FILE
            if mod_data_path.is_file():
                try:
                    mod_data = toimod._json_object(
                        toimod._read_record(mod_data_path, self.keys.mod), toimod.MOD_DATA_FILE
                    )
                except CorruptArtifactError as exc:
                    toimod._warn(f"Ignoring unreadable {toimod.MOD_DATA_FILE}: {exc}")
                else:
                    namespace = toimod._json_str(mod_data, "modNamespace")
                    if namespace:
                        return namespace
            return toimod._json_str(export, "modNamespace") or toimod.namespace_for(project)

        def _gather_items(self):
            items_dir = self.root / toimod.ITEMS_DIR
            if not items_dir.is_dir():
                return None
            entries = {
                path.stem: toimod._read_record(path, self.keys.mod)
                for path in sorted(items_dir.glob("*.json"))
                if path.is_file()
            }
            indices = [str(index) for index in range(len(entries))]
            if sorted(entries) == sorted(indices):
                return [entries[index] for index in indices]
            return entries

        def _copy_filter(self, directory: str, names: "list[str]") -> "set[str]":
            parts = toimod.pathlib.Path(directory).relative_to(self.root).parts
            if not parts or parts[0] != toimod.CODE_DIR:
                return set()
            if len(parts) == 1:
                return {name for name in names if name != toimod.CODE_OUTPUT_DIR}
            return {
                name for name in names
                if toimod.pathlib.Path(name).suffix.lower() in toimod.DEBUG_SYMBOL_SUFFIXES
            }

        def _materialize_output(self) -> None:
            if self.output == self.root:
                return
            toimod._check_output_location(self.root, self.output)
            toimod._log(f"Copying '{self.root}' to '{self.output}'")
            toimod.shutil.copytree(self.root, self.output, ignore=self._copy_filter, dirs_exist_ok=True)

        def _sync_excel(self, excel_encrypt: bool) -> None:
            excel_root = self.output / toimod.EXCEL_DIR
            if not excel_root.is_dir():
                return
            for path in toimod._iter_files(excel_root, toimod.JSON_SUFFIXES):
                data = path.read_bytes()
                encrypted = toimod.looks_encrypted(data)
                if excel_encrypt and not encrypted:
                    toimod._log(f"Encrypting '{path}'")
                    toimod._write_file(path, toimod.encrypt_bytes(data, self.keys.mod))
                elif not excel_encrypt and encrypted:
                    toimod._log(f"Decrypting '{path}'")
                    toimod._write_file(path, toimod.decrypt_bytes(data, self.keys.mod))

        def _encrypt_images(self) -> None:
            for path in toimod._iter_files(self.output, toimod.IMAGE_SUFFIXES):
                if toimod._in_subtree(self.output, path, toimod.IMAGE_EXCLUDED_DIRS):
                    continue
                data = path.read_bytes()
                if toimod.looks_encrypted(data):
                    continue
                toimod._log(f"Encrypting '{path}'")
                toimod._write_file(path, toimod.encrypt_bytes(data, self.keys.mod))

    class UnpackPipeline:
        """Explodes a packed mod back into ModProject.cache / ModData.cache and plain assets."""

        def __init__(self, root, output=None, keys: "toimod.typing.Optional[CipherKeys]" = None):
            self.root = toimod._normalize_path(root)
            self.output = toimod._normalize_path(output) if output else self.root
            self.keys = keys or toimod.DEFAULT_KEYS

        def run(self) -> "toimod.pathlib.Path":
            toimod._ensure_existing_dir(self.root)
            export_path = self.root / toimod.EXPORT_FILE
            if not export_path.is_file():
                raise MissingArtifactError(f"Missing required {toimod.EXPORT_FILE} in {self.root}")
            export = toimod._json_object(toimod._read_record(export_path, self.keys.mod), toimod.EXPORT_FILE)
            project = export.get("projectData")
            if not isinstance(project, dict):
                raise CorruptArtifactError(f"{toimod.EXPORT_FILE} missing projectData.")

            if self.output != self.root:
                toimod._check_output_location(self.root, self.output)
                toimod._log(f"Copying '{self.root}' to '{self.output}'")
                toimod.shutil.copytree(self.root, self.output, dirs_exist_ok=True)
            out = self.output
            out_export = out / toimod.EXPORT_FILE

            for path in toimod._iter_files(out):
                if path == out_export:
                    continue
                data = path.read_bytes()
                if not toimod.looks_encrypted(data):
                    continue
                toimod._log(f"Decrypting '{path}'")
                toimod._write_file(path, toimod.decrypt_bytes(data, self.keys.mod))

            self._write_items(export.get("items"))
            toimod._write_file(out / toimod.PROJECT_FILE, toimod._dump_json(project))
            mod_data = toimod.build_mod_data(toimod.namespace_for(project))
            toimod._write_file(out / toimod.MOD_DATA_FILE, toimod._dump_json(mod_data))
            toimod._log(f"Removing '{out_export}'")
            out_export.unlink()
            toimod._log("Unpack completed.")
            return out

        def _write_items(self, items) -> None:
            if isinstance(items, dict):
                entries = list(items.items())
            elif isinstance(items, list):
                entries = [(str(index), value) for index, value in enumerate(items)]
            else:
                return
            if not entries:
                return
            items_dir = self.output / toimod.ITEMS_DIR
            items_dir.mkdir(exist_ok=True)
            for key, value in entries:
                if not key or key in (".", "..") or "/" in key or "\\" in key:
                    raise CorruptArtifactError(f"{toimod.EXPORT_FILE} item key {key!r} is not a valid filename")
                target = items_dir / f"{key}.json"
                toimod._log(f"Writing '{target}'")
                toimod._write_file(target, toimod._dump_json(value))

    @staticmethod
    def pack(folder, output=None, keys=None, silent: bool = False) -> "toimod.pathlib.Path":
        previous_silent = toimod._SILENT_MODE
        toimod._SILENT_MODE = silent or previous_silent
        try:
            return toimod.PackPipeline(folder, output, keys).run()
        finally:
            toimod._SILENT_MODE = previous_silent

    @staticmethod
    def unpack(folder, output=None, keys=None, silent: bool = False) -> "toimod.pathlib.Path":
        previous_silent = toimod._SILENT_MODE
        toimod._SILENT_MODE = silent or previous_silent
        try:
            return toimod.UnpackPipeline(folder, output, keys).run()
        finally:
            toimod._SILENT_MODE = previous_silent

    # ------------------------------------------------------------------
    # save files
    # ------------------------------------------------------------------

    class SaveTranscoder:
        """Per-file save transcoding.

        Unpack records in SaveMetadata.json which transforms it undid for each
        file; pack replays exactly those, so a round trip restores the original
        packed state rather than a canonical one.
        """

        def __init__(self, root, keys: "toimod.typing.Optional[CipherKeys]" = None, keep_names: bool = False):
            self.root = toimod._normalize_path(root)
            self.keys = keys or toimod.DEFAULT_KEYS
            self.keep_names = keep_names
            self.metadata_path = self.root / toimod.SAVE_METADATA_FILE

        def _load_metadata(self) -> "dict[str, SaveMetadataEntry]":
            try:
                raw = toimod._load_json(self.metadata_path.read_bytes())
            except InvalidJsonError as exc:
                raise CorruptArtifactError(f"{toimod.SAVE_METADATA_FILE} is not valid JSON: {exc}") from exc
            raw = toimod._json_object(raw, toimod.SAVE_METADATA_FILE)
            metadata = {}
            for rel, entry in raw.items():
                rel_path = toimod.pathlib.PurePosixPath(rel)
                if rel_path.is_absolute() or ".." in rel_path.parts or not rel_path.parts:
                    raise CorruptArtifactError(f"Unsafe path in {toimod.SAVE_METADATA_FILE}: {rel!r}")
                metadata[rel] = SaveMetadataEntry.from_json(entry, rel)
            return metadata

        def _save_metadata(self, metadata: "dict[str, SaveMetadataEntry]") -> None:
            payload = {rel: entry.to_json() for rel, entry in metadata.items()}
            toimod._write_file(self.metadata_path, toimod._dump_json(payload))

        def unpack(self) -> "dict[str, SaveMetadataEntry]":
            toimod._ensure_existing_dir(self.root)
            metadata = self._load_metadata() if self.metadata_path.is_file() else {}
            for path in toimod._iter_files(self.root):
                if path == self.metadata_path:
                    continue
                rel = toimod._relative_posix(self.root, path)
                data = path.read_bytes()
                if not toimod.looks_encrypted(data):
                    # keep what an interrupted earlier run already recorded
                    metadata.setdefault(rel, SaveMetadataEntry())
                    continue
                final_rel, entry = self._unpack_file(path, data)
                metadata.pop(rel, None)
                metadata[final_rel] = entry
                self._save_metadata(metadata)
            self._save_metadata(metadata)
            toimod._log("Save unpack completed.")
            return metadata

        def _unpack_file(self, path: "toimod.pathlib.Path", data: bytes) -> "toimod.typing.Tuple[str, SaveMetadataEntry]":
            entry = SaveMetadataEntry(is_file_encrypted=True)
            payload = toimod.decrypt_bytes(data, self.keys.save)
            entry.is_file_compressed = toimod.is_gzip(payload)
            if entry.is_file_compressed:
                payload = toimod.decompress(payload)
            payload = toimod.try_pretty_print(payload)

            target = path
            try:
                plain_name = toimod.decrypt_name(path.name, self.keys.save)
            except MalformedEncodingError:
                plain_name = None
            if plain_name is not None:
                entry.is_original_name_encrypted = True
                if not self.keep_names:
                    candidate = path.with_name(plain_name)
                    if not candidate.exists():
                        target = candidate
                        entry.is_name_decrypted = True
                    elif candidate.is_file() and candidate.read_bytes() == payload:
                        # written by an earlier run that stopped before removing the source
                        toimod._log(f"Finishing rename of '{path}' -> '{candidate.name}'")
                        path.unlink()
                        entry.is_name_decrypted = True
                        return toimod._relative_posix(self.root, candidate), entry
                    else:
                        toimod._warn(f"'{candidate}' already exists; keeping encrypted name '{path.name}'")

            if target != path:
                toimod._log(f"Decrypting '{path}' -> '{target.name}'")
            else:
                toimod._log(f"Decrypting '{path}'")
            toimod._write_file(target, payload)
            if target != path:
                path.unlink()
            return toimod._relative_posix(self.root, target), entry

        def pack(self) -> None:
            toimod._ensure_existing_dir(self.root)
            if not self.metadata_path.is_file():
                raise MissingMetadataError(
                    f"Missing {toimod.SAVE_METADATA_FILE} in {self.root}; run save-unpack first"
                )
            metadata = self._load_metadata()
            for rel, entry in metadata.items():
                if entry.is_file_encrypted:
                    self._pack_file(rel, entry)
            self.metadata_path.unlink()
            toimod._log("Save pack completed.")

        def _pack_file(self, rel: str, entry: SaveMetadataEntry) -> None:
            path = self.root.joinpath(*toimod.pathlib.PurePosixPath(rel).parts)
            rename = (
                not self.keep_names
                and entry.is_original_name_encrypted
                and entry.is_name_decrypted
            )
            target = path.with_name(toimod.encrypt_name(path.name, self.keys.save)) if rename else path
            if not path.is_file():
                if target != path and target.is_file():
                    return  # renamed by an earlier, interrupted pack
                toimod._warn(f"Skipping missing save file '{path}'")
                return
            data = path.read_bytes()
            if toimod.looks_encrypted(data):
                payload = data
            else:
                payload = toimod.try_minify(data)
                if entry.is_file_compressed:
                    payload = toimod.compress(payload)
                payload = toimod.encrypt_bytes(payload, self.keys.save)
            if target != path:
                toimod._log(f"Encrypting '{path}' -> '{target.name}'")
            else:
                toimod._log(f"Encrypting '{path}'")
            toimod._write_file(target, payload)
            if target != path:
                path.unlink()

    @staticmethod
    def save_unpack(folder, keep_names: bool = False, keys=None, silent: bool = False) -> "dict[str, SaveMetadataEntry]":
        previous_silent = toimod._SILENT_MODE
        toimod._SILENT_MODE = silent or previous_silent
        try:
            return toimod.SaveTranscoder(folder, keys, keep_names).unpack()
        finally:
            toimod._SILENT_MODE = previous_silent

    @staticmethod
    def save_pack(folder, keep_names: bool = False, keys=None, silent: bool = False) -> None:
        previous_silent = toimod._SILENT_MODE
        toimod._SILENT_MODE = silent or previous_silent
        try:
            toimod.SaveTranscoder(folder, keys, keep_names).pack()
        finally:
            toimod._SILENT_MODE = previous_silent

    # ------------------------------------------------------------------
    # external editor
    # ------------------------------------------------------------------

    @staticmethod
    def launch_editor(path) -> int:
        editor = _os_module.getenv("VISUAL") or _os_module.getenv("EDITOR")
        if not editor:
            editor = "notepad" if _os_module.name == "nt" else "vi"
        command = toimod.shlex.split(editor, posix=_os_module.name != "nt") + [str(path)]
        return toimod.subprocess.run(command, check=False).returncode

    @staticmethod
    def edit_file(
        path,
        launch_editor: "toimod.typing.Optional[toimod.typing.Callable[[toimod.pathlib.Path], int]]" = None,
        save: bool = False,
        keys: "toimod.typing.Optional[CipherKeys]" = None
    ) -> bool:
        """Open a packed or plain file in an editor and write edits back in the original form.

        Returns True when the file changed.
        """
        keys = keys or toimod.DEFAULT_KEYS
        key = keys.save if save else keys.mod
        path = toimod._normalize_path(path)
        toimod._ensure_existing_file(path)
        original = path.read_bytes()
        encrypted = toimod.looks_encrypted(original)
        payload = toimod.decrypt_bytes(original, key)
        compressed = save and toimod.is_gzip(payload)
        if compressed:
            payload = toimod.decompress(payload)
        editable = toimod.try_pretty_print(payload)

        launcher = launch_editor or toimod.launch_editor
        with toimod.tempfile.TemporaryDirectory(prefix="toimod-edit-") as temp_dir:
            temp_path = toimod.pathlib.Path(temp_dir) / path.name
            temp_path.write_bytes(editable)
            status = launcher(temp_path)
            if status != 0:
                raise EditorError(f"Editor exited with status {status}; '{path}' left unchanged")
            edited = temp_path.read_bytes()

        if edited == editable:
            toimod._log(f"No changes to '{path}'")
            return False
        result = toimod.try_minify(edited) if save else edited
        if compressed:
            result = toimod.compress(result)
        if encrypted:
            result = toimod.encrypt_bytes(result, key)
        toimod._log(f"Updating '{path}'")
        toimod._write_file(path, result)
        return True


def cli(argv=None) -> int:
    import argparse

    def _cli_config_path() -> "toimod.pathlib.Path":
        cfg = _os_module.getenv("TOIMOD_CLI_CONFIG")
        if cfg:
            return toimod.pathlib.Path(cfg).expanduser()
        xdg = _os_module.getenv("XDG_CONFIG_HOME")
        if xdg:
            return toimod.pathlib.Path(xdg) / "toimod" / "cli.conf"
        appdata = _os_module.getenv("APPDATA")
        if appdata:
            return toimod.pathlib.Path(appdata) / "toimod" / "cli.conf"
        return toimod.pathlib.Path("~/.config/toimod/cli.conf").expanduser()

    def _cli_plain_mode() -> bool:
        if _os_module.getenv("TOIMOD_CLI_PLAIN"):
            return True
        if _os_module.getenv("NO_COLOR"):
            return True
        style = (_os_module.getenv("TOIMOD_CLI_STYLE") or "").strip().lower()
        if style in {"plain", "boring", "0", "false", "off"}:
            return True
        if style in {"color", "emoji", "on"}:
            return False
        cfg_path = _cli_config_path()
        try:
            if cfg_path.exists():
                data = cfg_path.read_text(encoding="utf-8").lower()
                if "plain=1" in data or "plain=true" in data:
                    return True
                if "style=plain" in data or "mode=plain" in data:
                    return True
        except OSError:
            pass
        return False

    class _CliTheme:
        def __init__(self, plain: bool):
            self.plain = plain
            self.reset = "" if plain else "\033[0m"
            self.bold = "" if plain else "\033[1m"
            self.red = "" if plain else "\033[31m"
            self.green = "" if plain else "\033[32m"
            self.yellow = "" if plain else "\033[33m"

        def _wrap(self, msg: str, color: str, emoji: str | None = None) -> str:
            if self.plain:
                return msg
            prefix = f"{emoji} " if emoji else ""
            return f"{self.bold}{color}{prefix}{msg}{self.reset}"

        def ok(self, msg: str) -> str:
            return self._wrap(msg, self.green, "✅")

        def warn(self, msg: str) -> str:
            return self._wrap(msg, self.yellow, "⚠️")

        def err(self, msg: str) -> str:
            return self._wrap(msg, self.red, "❌")

    theme = _CliTheme(_cli_plain_mode())

    parser = argparse.ArgumentParser(prog="toimod", description="Mod tooling for Tale of Immortal")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for verb, help_text in (
        ("encrypt", "Encrypt a file, or all mod files in a folder (in-place)"),
        ("decrypt", "Decrypt a file, or all files in a folder (in-place)"),
    ):
        sub = subparsers.add_parser(verb, help=help_text)
        sub.add_argument("path", help="File or folder containing mod files")
        sub.add_argument("--save", action="store_true", help="Use the save-file key instead of the mod key")
        sub.add_argument("--stdout", action="store_true", help="Write a single file's result to standard output")

    restore = subparsers.add_parser(
        "restore-excel",
        help="Decrypt json mod files (in-place), and for ModExportData.cache set excelEncrypt=false"
    )
    restore.add_argument("folder", help="Folder containing mod files")

    pack = subparsers.add_parser("pack", help="Pack mod files so that the mod can be loaded in-game")
    pack.add_argument("folder", help="Folder containing mod files")
    pack.add_argument("-o", "--output", default=None, help="Output folder. Defaults to input folder")

    unpack = subparsers.add_parser(
        "unpack",
        help="Unpack mod files so that the mod can be edited in the in-game mod editor"
    )
    unpack.add_argument("folder", help="Folder containing mod files")
    unpack.add_argument("-o", "--output", default=None, help="Output folder. Defaults to input folder")

    for verb, help_text in (
        ("save-pack", "Re-encrypt an unpacked save folder (in-place)"),
        ("save-unpack", "Decrypt and decompress a save folder (in-place)"),
    ):
        sub = subparsers.add_parser(verb, help=help_text)
        sub.add_argument("folder", help="Save folder")
        sub.add_argument(
            "--keep-names",
            action="store_true",
            help="Leave encrypted filenames as they are"
        )

    new = subparsers.add_parser("new", help="Create a new mod template folder")
    new.add_argument("name", help="Name of the mod (and folder)")
    new.add_argument("--dir", dest="parent", default=".", help="Parent folder for the new project")

    edit = subparsers.add_parser("edit", help="Open a (possibly packed) file in $EDITOR and re-pack it on save")
    edit.add_argument("file", help="File to edit")
    edit.add_argument("--save", action="store_true", help="Treat the file as a save file")

    args = parser.parse_args(argv)

    try:
        if args.command in ("encrypt", "decrypt"):
            key = toimod.SAVE_KEY if args.save else toimod.MOD_KEY
            path = toimod._normalize_path(args.path)
            if path.is_dir():
                if args.stdout:
                    print(theme.err("--stdout needs a single file, not a folder"), file=toimod.sys.stderr)
                    return 1
                if args.command == "encrypt":
                    toimod.encrypt_tree(path, key)
                else:
                    toimod.decrypt_tree(path, key)
            else:
                handler = toimod.encrypt_file if args.command == "encrypt" else toimod.decrypt_file
                if args.stdout:
                    handler(path, key, output=toimod.sys.stdout.buffer)
                    toimod.sys.stdout.flush()
                    return 0
                handler(path, key)
            print(theme.ok(f"{args.command.capitalize()} completed."))
            return 0

        if args.command == "restore-excel":
            toimod.restore_excel(args.folder)
            print(theme.ok("Restore completed."))
            return 0

        if args.command == "pack":
            toimod.pack(args.folder, args.output)
            return 0

        if args.command == "unpack":
            toimod.unpack(args.folder, args.output)
            return 0

        if args.command == "save-unpack":
            toimod.save_unpack(args.folder, keep_names=args.keep_names)
            return 0

        if args.command == "save-pack":
            toimod.save_pack(args.folder, keep_names=args.keep_names)
            return 0

        if args.command == "new":
            toimod.new_project(args.name, args.parent)
            return 0

        if args.command == "edit":
            changed = toimod.edit_file(args.file, save=args.save)
            print(theme.ok("Saved changes.") if changed else theme.warn("Nothing changed."))
            return 0
    except (ToimodError, OSError, ValueError) as exc:
        print(theme.err(f"{args.command} failed: {exc}"), file=toimod.sys.stderr)
        return 1

    return 0


def main(argv=None) -> int:
    try:
        return cli(argv)
    except KeyboardInterrupt:
        print("Exiting...")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
