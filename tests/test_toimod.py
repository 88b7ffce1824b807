import gzip
import json
import random
import sys
import unittest
import warnings
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

try:
    from cryptography.utils import CryptographyDeprecationWarning
    from toimod.main import (
        CorruptArtifactError,
        EmptyKeyError,
        MalformedEncodingError,
        SaveMetadataEntry,
        toimod,
    )
except ModuleNotFoundError as exc:  # pragma: no cover - dependency missing
    toimod = None
    _IMPORT_ERROR = exc
else:
    _IMPORT_ERROR = None


@unittest.skipIf(toimod is None, f"dependency unavailable: {_IMPORT_ERROR}")
class StreamCodecTests(unittest.TestCase):
    """Header sniffing and the rolling additive key."""

    def test_header_is_validation_key_xor3(self):
        self.assertEqual(len(toimod.HEADER), 21)
        self.assertEqual(toimod.HEADER[0], ord("2") ^ 3)
        self.assertEqual(toimod.HEADER[-1], ord("D") ^ 3)

    def test_encrypt_known_answer(self):
        encrypted = toimod.encrypt_bytes(b"\x00\x01\xff", b"AB")
        self.assertEqual(encrypted, toimod.HEADER + bytes([0x41, 0x43, 0x40]))

    def test_roundtrip_random_payloads(self):
        rng = random.Random(1234)
        for length in (1, 2, 7, 22, 23, 100, 4096):
            data = bytes(rng.randrange(256) for _ in range(length))
            for key in (toimod.MOD_KEY, toimod.SAVE_KEY, b"\xff", b"k3y"):
                with self.subTest(length=length, key=key):
                    blob = toimod.encrypt_bytes(data, key)
                    self.assertTrue(toimod.looks_encrypted(blob))
                    self.assertEqual(len(blob), len(data) + len(toimod.HEADER))
                    self.assertEqual(toimod.decrypt_bytes(blob, key), data)

    def test_str_and_bytes_keys_agree(self):
        data = b'{"name": "value"}'
        self.assertEqual(
            toimod.encrypt_bytes(data, toimod.MOD_KEY),
            toimod.encrypt_bytes(data, toimod.MOD_KEY.encode("utf-8")),
        )

    def test_encrypt_is_noop_on_packed_data(self):
        blob = toimod.encrypt_bytes(b"payload", toimod.MOD_KEY)
        self.assertEqual(toimod.encrypt_bytes(blob, toimod.MOD_KEY), blob)
        self.assertEqual(toimod.encrypt_bytes(blob, toimod.SAVE_KEY), blob)
        self.assertEqual(toimod.encrypt_bytes(toimod.HEADER, "x"), toimod.HEADER)

    def test_decrypt_is_noop_on_plain_data(self):
        for data in (b"", b"plain text", toimod.HEADER[:-1], b"\x00" * 64):
            with self.subTest(data=data):
                self.assertEqual(toimod.decrypt_bytes(data, toimod.MOD_KEY), data)

    def test_header_only_decrypts_to_empty(self):
        self.assertEqual(toimod.decrypt_bytes(toimod.HEADER, toimod.MOD_KEY), b"")

    def test_looks_encrypted_requires_full_header(self):
        self.assertFalse(toimod.looks_encrypted(toimod.HEADER[:-1]))
        self.assertFalse(toimod.looks_encrypted(b"x" + toimod.HEADER))
        self.assertTrue(toimod.looks_encrypted(toimod.HEADER + b"tail"))

    def test_empty_key_rejected(self):
        with self.assertRaises(EmptyKeyError):
            toimod.encrypt_bytes(b"abc", b"")
        with self.assertRaises(EmptyKeyError):
            toimod.decrypt_bytes(toimod.HEADER + b"abc", "")

    def test_empty_key_ignored_when_nothing_to_do(self):
        blob = toimod.HEADER + b"abc"
        self.assertEqual(toimod.encrypt_bytes(blob, b""), blob)
        self.assertEqual(toimod.decrypt_bytes(b"abc", b""), b"abc")


@unittest.skipIf(toimod is None, f"dependency unavailable: {_IMPORT_ERROR}")
class NameCipherTests(unittest.TestCase):
    """DES name obfuscation with the @ for / substitution."""

    def test_encrypt_known_answer(self):
        self.assertEqual(toimod.encrypt_name("PlayerData", toimod.SAVE_KEY), "eyuDaZaPOj3Rh42Pm2r7Xw==")
        self.assertEqual(toimod.decrypt_name("eyuDaZaPOj3Rh42Pm2r7Xw==", toimod.SAVE_KEY), "PlayerData")

    def test_no_deprecated_single_key_des(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            toimod.decrypt_name(toimod.encrypt_name("PlayerData", toimod.SAVE_KEY), toimod.SAVE_KEY)
        self.assertEqual([w for w in caught if issubclass(w.category, CryptographyDeprecationWarning)], [])

    def test_roundtrip(self):
        for name in ("PlayerData", "a", "存档_1", "slot 3.sav", "x" * 40):
            with self.subTest(name=name):
                encoded = toimod.encrypt_name(name, toimod.SAVE_KEY)
                self.assertEqual(toimod.decrypt_name(encoded, toimod.SAVE_KEY), name)

    def test_encoding_is_path_safe_and_deterministic(self):
        for index in range(200):
            name = f"file_{index}"
            encoded = toimod.encrypt_name(name, toimod.SAVE_KEY)
            self.assertNotIn("/", encoded)
            self.assertEqual(encoded, toimod.encrypt_name(name, toimod.SAVE_KEY))
            self.assertEqual(len(encoded) % 4, 0)

    def test_key_changes_output(self):
        self.assertNotEqual(
            toimod.encrypt_name("PlayerData", toimod.SAVE_KEY),
            toimod.encrypt_name("PlayerData", toimod.MOD_KEY),
        )

    def test_plain_names_are_malformed(self):
        for text in ("Player.sav", "abc", "", "abcdefgh", "hello world", "ü"):
            with self.subTest(text=text):
                with self.assertRaises(MalformedEncodingError):
                    toimod.decrypt_name(text, toimod.SAVE_KEY)

    def test_empty_key_rejected(self):
        with self.assertRaises(EmptyKeyError):
            toimod.encrypt_name("name", "")


@unittest.skipIf(toimod is None, f"dependency unavailable: {_IMPORT_ERROR}")
class CompressionAndJsonTests(unittest.TestCase):

    def test_compress_roundtrip(self):
        data = b'{"a": 1}' * 50
        packed = toimod.compress(data)
        self.assertTrue(toimod.is_gzip(packed))
        self.assertEqual(toimod.decompress(packed), data)
        self.assertEqual(gzip.decompress(packed), data)

    def test_compress_is_deterministic(self):
        self.assertEqual(toimod.compress(b"same"), toimod.compress(b"same"))

    def test_decompress_rejects_garbage(self):
        with self.assertRaises(CorruptArtifactError):
            toimod.decompress(b"\x1f\x8bnot really gzip")

    def test_pretty_print_and_minify(self):
        self.assertEqual(toimod.try_pretty_print(b'{"a":1}'), b'{\n  "a": 1\n}')
        self.assertEqual(toimod.try_minify(b'{\n  "a": [1, 2]\n}'), b'{"a":[1,2]}')

    def test_non_ascii_is_kept_verbatim(self):
        pretty = toimod.try_pretty_print('{"名":"值"}'.encode("utf-8"))
        self.assertIn("值".encode("utf-8"), pretty)

    def test_non_json_passes_through(self):
        for data in (b"\x00\x01\x02", b"", b"{broken", b"\xff\xfe"):
            with self.subTest(data=data):
                self.assertEqual(toimod.try_pretty_print(data), data)
                self.assertEqual(toimod.try_minify(data), data)


@unittest.skipIf(toimod is None, f"dependency unavailable: {_IMPORT_ERROR}")
class SaveMetadataEntryTests(unittest.TestCase):

    def test_json_roundtrip(self):
        entry = SaveMetadataEntry(True, True, True, True)
        self.assertEqual(SaveMetadataEntry.from_json(entry.to_json()), entry)
        self.assertEqual(
            json.loads(json.dumps(entry.to_json())),
            {
                "isFileEncrypted": True,
                "isOriginalNameEncrypted": True,
                "isNameDecrypted": True,
                "isFileCompressed": True,
            },
        )

    def test_missing_compression_flag_defaults_to_encrypted_state(self):
        entry = SaveMetadataEntry.from_json({
            "isFileEncrypted": True,
            "isOriginalNameEncrypted": False,
            "isNameDecrypted": False,
        })
        self.assertTrue(entry.is_file_compressed)

    def test_name_decrypted_requires_original_encrypted(self):
        with self.assertRaises(CorruptArtifactError):
            SaveMetadataEntry.from_json({
                "isFileEncrypted": True,
                "isOriginalNameEncrypted": False,
                "isNameDecrypted": True,
            })

    def test_non_boolean_flag_rejected(self):
        with self.assertRaises(CorruptArtifactError):
            SaveMetadataEntry.from_json({"isFileEncrypted": "yes"})


if __name__ == "__main__":
    unittest.main()
