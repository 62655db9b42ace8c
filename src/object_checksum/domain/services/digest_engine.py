"""Resumable block digests (SHA-256, MD5).

``hashlib`` objects cannot be serialized, so a digest that has to survive
between two invocations drives OpenSSL's ``SHA256_*`` and ``MD5_*``
functions through ctypes instead. Their context structs are public and
carry the whole Merkle-Damgard state: the chaining value, the bytes not
yet compressed and the running bit count. Exporting those captures the
computation; importing them continues it bit-exactly at C speed.

The libcrypto that ``hashlib`` is linked against is used when it exposes
these functions; otherwise the system libcrypto is loaded by name.

State Format (big-endian header, then algorithm-specific body):
    magic "RDGS" (4) | version (1) | algorithm code (1) |
    byte count (8) | buffered length (1) |
    chaining words (32 or 16 bytes, algorithm byte order) |
    buffered bytes (buffered length)

Usage:
    digest = create_digest(DigestAlgorithm.SHA256)
    digest.update(b"first part")
    state = digest.export_state()

    resumed = create_digest(DigestAlgorithm.SHA256, state)
    resumed.update(b"second part")
    resumed.hexdigest()
"""

from __future__ import annotations

import ctypes
import importlib.util
import struct
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, ClassVar

from object_checksum.domain.errors import (
    ChecksumError,
    ConfigurationError,
    CorruptStateError,
    DigestFinalizedError,
)
from object_checksum.domain.value_objects import DigestAlgorithm


STATE_MAGIC = b"RDGS"
STATE_VERSION = 1
STATE_HEADER_FORMAT = ">4sBBQB"  # magic, version, algorithm, byte_count, buffered
STATE_HEADER_SIZE = struct.calcsize(STATE_HEADER_FORMAT)

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF

LIBCRYPTO_NAMES = (
    "libcrypto.so.3",
    "libcrypto.so.1.1",
    "libcrypto-3-x64.dll",
    "libcrypto-1_1-x64.dll",
)
_REQUIRED_SYMBOLS = tuple(
    f"{prefix}_{step}" for prefix in ("SHA256", "MD5") for step in ("Init", "Update", "Final")
)


class _Sha256Context(ctypes.Structure):
    # SHA256_CTX, <openssl/sha.h>
    _fields_ = [
        ("h", ctypes.c_uint32 * 8),
        ("Nl", ctypes.c_uint32),
        ("Nh", ctypes.c_uint32),
        ("data", ctypes.c_uint8 * 64),
        ("num", ctypes.c_uint),
        ("md_len", ctypes.c_uint),
    ]


class _Md5Context(ctypes.Structure):
    # MD5_CTX, <openssl/md5.h>; h holds A, B, C, D
    _fields_ = [
        ("h", ctypes.c_uint32 * 4),
        ("Nl", ctypes.c_uint32),
        ("Nh", ctypes.c_uint32),
        ("data", ctypes.c_uint8 * 64),
        ("num", ctypes.c_uint),
    ]


def _libcrypto_candidates() -> list[str]:
    candidates = []
    module_spec = importlib.util.find_spec("_hashlib")
    if module_spec is not None and module_spec.origin and module_spec.origin != "built-in":
        candidates.append(module_spec.origin)
    candidates.extend(LIBCRYPTO_NAMES)
    return candidates


@lru_cache(maxsize=None)
def load_libcrypto() -> ctypes.CDLL:
    """Load a libcrypto exporting the SHA256 and MD5 context functions.

    Raises:
        ConfigurationError: If no candidate library provides them.
    """
    tried = []
    for name in _libcrypto_candidates():
        try:
            lib = ctypes.CDLL(name)
        except OSError as e:
            tried.append(f"{name} ({e})")
            continue
        if all(hasattr(lib, symbol) for symbol in _REQUIRED_SYMBOLS):
            return lib
        tried.append(f"{name} (missing SHA256_*/MD5_* functions)")
    raise ConfigurationError(
        "No usable OpenSSL libcrypto found; tried: " + ", ".join(tried)
    )


@dataclass(frozen=True)
class _Primitive:
    """Bound Init/Update/Final functions for one algorithm."""

    init: Any
    update: Any
    final: Any


@lru_cache(maxsize=None)
def _primitive(prefix: str, context_type: type[ctypes.Structure]) -> _Primitive:
    lib = load_libcrypto()
    context_pointer = ctypes.POINTER(context_type)

    init = getattr(lib, f"{prefix}_Init")
    init.argtypes = [context_pointer]
    init.restype = ctypes.c_int

    update = getattr(lib, f"{prefix}_Update")
    update.argtypes = [context_pointer, ctypes.c_void_p, ctypes.c_size_t]
    update.restype = ctypes.c_int

    final = getattr(lib, f"{prefix}_Final")
    final.argtypes = [ctypes.POINTER(ctypes.c_ubyte), context_pointer]
    final.restype = ctypes.c_int

    return _Primitive(init=init, update=update, final=final)


def _check(result: int, operation: str) -> None:
    if result != 1:
        raise ChecksumError(f"OpenSSL {operation} failed")


class BlockDigest:
    """Merkle-Damgard digest over 64-byte blocks with exportable state.

    Subclasses name the OpenSSL context type and function prefix, and the
    byte order of the chaining words in the exported state.
    """

    algorithm: ClassVar[DigestAlgorithm]
    algorithm_code: ClassVar[int]
    digest_size: ClassVar[int]
    block_size: ClassVar[int] = 64
    word_order: ClassVar[str]  # struct byte order: ">" or "<"
    word_count: ClassVar[int]
    _symbol_prefix: ClassVar[str]
    _context_type: ClassVar[type[ctypes.Structure]]

    def __init__(self) -> None:
        self._functions = _primitive(self._symbol_prefix, self._context_type)
        self._context = self._context_type()
        _check(self._functions.init(ctypes.byref(self._context)), f"{self._symbol_prefix}_Init")
        self._finalized = False

    @property
    def byte_count(self) -> int:
        """Total number of bytes fed so far."""
        return ((self._context.Nh << 32) | self._context.Nl) >> 3

    @property
    def finalized(self) -> bool:
        return self._finalized

    def update(self, data: bytes | bytearray | memoryview) -> None:
        """Feed bytes into the digest.

        Raises:
            DigestFinalizedError: If the digest was already finalized.
        """
        if self._finalized:
            raise DigestFinalizedError("Cannot update a finalized digest")

        payload = data if isinstance(data, bytes) else memoryview(data).cast("B").tobytes()
        if not payload:
            return
        _check(
            self._functions.update(ctypes.byref(self._context), payload, len(payload)),
            f"{self._symbol_prefix}_Update",
        )

    def finalize(self) -> bytes:
        """Pad, compress the final block(s) and return the digest.

        Raises:
            DigestFinalizedError: If called more than once.
        """
        if self._finalized:
            raise DigestFinalizedError("Digest already finalized")

        out = (ctypes.c_ubyte * self.digest_size)()
        _check(
            self._functions.final(out, ctypes.byref(self._context)),
            f"{self._symbol_prefix}_Final",
        )
        self._finalized = True
        return bytes(out)

    def hexdigest(self) -> str:
        """Finalize and return the digest as lowercase hex."""
        return self.finalize().hex()

    def export_state(self) -> bytes:
        """Serialize the running computation.

        Raises:
            DigestFinalizedError: If the digest was already finalized.
        """
        if self._finalized:
            raise DigestFinalizedError("Cannot export the state of a finalized digest")

        context = self._context
        buffered = context.num
        header = struct.pack(
            STATE_HEADER_FORMAT,
            STATE_MAGIC,
            STATE_VERSION,
            self.algorithm_code,
            self.byte_count,
            buffered,
        )
        words = struct.pack(f"{self.word_order}{self.word_count}I", *context.h)
        return header + words + bytes(context.data)[:buffered]

    @classmethod
    def from_state(cls, encoded: bytes) -> "BlockDigest":
        """Rebuild a digest from :meth:`export_state` output.

        Raises:
            CorruptStateError: If the state is truncated, inconsistent or
                was produced by another algorithm.
        """
        if len(encoded) < STATE_HEADER_SIZE:
            raise CorruptStateError(
                f"Digest state too short: {len(encoded)} bytes"
            )

        magic, version, code, byte_count, buffered = struct.unpack(
            STATE_HEADER_FORMAT, encoded[:STATE_HEADER_SIZE]
        )
        if magic != STATE_MAGIC:
            raise CorruptStateError(f"Invalid digest state magic: {magic!r}")
        if version != STATE_VERSION:
            raise CorruptStateError(f"Unsupported digest state version: {version}")
        if code != cls.algorithm_code:
            raise CorruptStateError(
                f"Digest state algorithm code {code} does not match "
                f"{cls.algorithm.value} ({cls.algorithm_code})"
            )
        if buffered >= cls.block_size or buffered != byte_count % cls.block_size:
            raise CorruptStateError(
                f"Digest state buffer length {buffered} is inconsistent with "
                f"byte count {byte_count}"
            )

        words_size = cls.word_count * 4
        expected_size = STATE_HEADER_SIZE + words_size + buffered
        if len(encoded) != expected_size:
            raise CorruptStateError(
                f"Digest state size mismatch: expected {expected_size}, "
                f"got {len(encoded)}"
            )

        digest = cls()
        context = digest._context
        words_end = STATE_HEADER_SIZE + words_size
        context.h[:] = struct.unpack(
            f"{cls.word_order}{cls.word_count}I", encoded[STATE_HEADER_SIZE:words_end]
        )
        bit_count = (byte_count << 3) & _MASK64
        context.Nl = bit_count & _MASK32
        context.Nh = bit_count >> 32
        context.data[:buffered] = list(encoded[words_end:])
        context.num = buffered
        return digest


class Sha256Digest(BlockDigest):
    """SHA-256 (FIPS 180-4)."""

    algorithm = DigestAlgorithm.SHA256
    algorithm_code = 1
    digest_size = 32
    word_order = ">"
    word_count = 8
    _symbol_prefix = "SHA256"
    _context_type = _Sha256Context


class Md5Digest(BlockDigest):
    """MD5 (RFC 1321)."""

    algorithm = DigestAlgorithm.MD5
    algorithm_code = 2
    digest_size = 16
    word_order = "<"
    word_count = 4
    _symbol_prefix = "MD5"
    _context_type = _Md5Context


_DIGESTS: dict[DigestAlgorithm, type[BlockDigest]] = {
    DigestAlgorithm.SHA256: Sha256Digest,
    DigestAlgorithm.MD5: Md5Digest,
}


def digest_class(algorithm: DigestAlgorithm | str) -> type[BlockDigest]:
    """Return the digest implementation for an algorithm.

    Raises:
        ConfigurationError: If the algorithm is not supported.
    """
    algorithm = DigestAlgorithm.parse(algorithm)
    try:
        return _DIGESTS[algorithm]
    except KeyError:
        raise ConfigurationError(f"Not supported: {algorithm.value}") from None


def create_digest(
    algorithm: DigestAlgorithm | str, state: bytes | None = None
) -> BlockDigest:
    """Create a fresh digest, or resume one from exported state."""
    cls = digest_class(algorithm)
    if state is None:
        return cls()
    return cls.from_state(state)
