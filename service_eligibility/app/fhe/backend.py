"""
Confidential-computation backend interface and in-process reference backend.

The core never decrypts and never branches on plaintext; it drives the
backend through the ``ConfidentialBackend`` protocol. ``LocalConfidentialBackend``
is the reference implementation used by the service and the tests:

- Every value is sealed with AES-256-GCM at rest, bound to its handle as
  associated data, so the store only ever holds ciphertext.
- External inputs are accepted only with an HMAC-SHA256 proof binding the
  handle list to one (contract, user) pair.
- Every operand is checked against the ACL. A handle is usable by an
  executor when it holds a persistent grant or a transient allowance; the
  latter covers handles produced during the current call and is dropped
  when the call ends.
- Backend state joins the ledger: grants and new ciphertexts produced during
  a call are staged and only become durable on commit. Readers outside the
  call (grant queries, the relayer) only ever see committed grants.
- Storage stays bounded: on commit, staged ciphertexts that nobody holds a
  grant on are dropped, since no one could ever use them again. Uploaded
  inputs wait in a capped upload area and are consumed by the call that
  binds them.

Proof wire format::

    [count:1] [handle:32] * count [tag:32]
"""

import os
import threading
from collections import OrderedDict
from typing import Dict, FrozenSet, List, Optional, Protocol, Sequence, Set, Tuple, Union, runtime_checkable

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from shared.errors import BackendRejection, ValidationError
from shared.logging import get_logger
from .handles import CiphertextHandle, FheType, HANDLE_SIZE

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 32
MAX_INPUTS_PER_PROOF = 255
DEFAULT_MAX_UPLOADS = 10000
PROOF_DOMAIN = b"confidential-eligibility/input-proof/v1"

PlainValue = Union[int, bool]


@runtime_checkable
class ConfidentialBackend(Protocol):
    """Capabilities the core calls into.

    ``executor`` is the principal running the computation (the contract);
    ``caller`` is the principal that submitted the call.
    """

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def from_external(self, executor: str, caller: str, handle: CiphertextHandle,
                      proof: bytes, expected_type: FheType) -> CiphertextHandle: ...

    def trivial_encrypt(self, executor: str, value: int, fhe_type: FheType) -> CiphertextHandle: ...

    def ge(self, executor: str, lhs: CiphertextHandle, rhs: CiphertextHandle) -> CiphertextHandle: ...

    def le(self, executor: str, lhs: CiphertextHandle, rhs: CiphertextHandle) -> CiphertextHandle: ...

    def and_(self, executor: str, lhs: CiphertextHandle, rhs: CiphertextHandle) -> CiphertextHandle: ...

    def allow(self, executor: str, handle: CiphertextHandle, principal: str) -> None: ...

    def allow_this(self, executor: str, handle: CiphertextHandle) -> None: ...

    def make_publicly_decryptable(self, executor: str, handle: CiphertextHandle) -> None: ...

    def is_allowed(self, handle: CiphertextHandle, principal: str) -> bool: ...

    def is_publicly_decryptable(self, handle: CiphertextHandle) -> bool: ...


def _check_range(value: PlainValue, fhe_type: FheType) -> int:
    if isinstance(value, bool):
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(
            "Cleartext value must be an integer",
            details={"type": fhe_type.name}
        )
    if value < 0 or value > fhe_type.max_value:
        raise ValidationError(
            f"Value out of range for {fhe_type.name}",
            details={"type": fhe_type.name, "max": fhe_type.max_value}
        )
    return value


def encode_proof(handles: Sequence[CiphertextHandle], tag: bytes) -> bytes:
    return bytes([len(handles)]) + b"".join(h.raw for h in handles) + tag


def decode_proof(proof: bytes) -> Tuple[List[CiphertextHandle], bytes]:
    """Split a proof into its handle list and tag."""
    if not proof:
        raise ValidationError("empty proof")
    count = proof[0]
    if count == 0 or len(proof) != 1 + count * HANDLE_SIZE + TAG_SIZE:
        raise ValidationError(
            "Malformed input proof",
            details={"length": len(proof)}
        )
    body = proof[1:1 + count * HANDLE_SIZE]
    handles = [
        CiphertextHandle(body[i:i + HANDLE_SIZE])
        for i in range(0, len(body), HANDLE_SIZE)
    ]
    return handles, proof[-TAG_SIZE:]


class LocalConfidentialBackend:
    """In-process reference backend."""

    def __init__(self, storage_key: Optional[bytes] = None, proof_key: Optional[bytes] = None,
                 max_uploads: int = DEFAULT_MAX_UPLOADS):
        self.logger = get_logger("eligibility.backend")
        self._aead = AESGCM(storage_key or AESGCM.generate_key(bit_length=256))
        self._proof_key = proof_key or os.urandom(KEY_SIZE)
        self.max_uploads = max_uploads
        self._lock = threading.RLock()

        # Committed state
        self._store: Dict[bytes, bytes] = {}
        self._acl: Set[Tuple[bytes, str]] = set()
        self._public: Set[bytes] = set()

        # Uploaded inputs not yet bound by a committed call, oldest first
        self._uploads: "OrderedDict[bytes, bytes]" = OrderedDict()

        # Per-call state
        self._in_call = False
        self._pending_store: Dict[bytes, bytes] = {}
        self._pending_acl: Set[Tuple[bytes, str]] = set()
        self._pending_public: Set[bytes] = set()
        self._transient: Set[Tuple[bytes, str]] = set()
        self._consumed: Set[bytes] = set()

    # Ledger participation

    def begin(self) -> None:
        with self._lock:
            if self._in_call:
                raise BackendRejection("A call is already in progress")
            self._in_call = True

    def commit(self) -> None:
        with self._lock:
            granted = {raw for raw, _ in self._pending_acl} | self._pending_public
            kept = {raw: blob for raw, blob in self._pending_store.items() if raw in granted}
            dropped = len(self._pending_store) - len(kept)

            self._store.update(kept)
            self._acl.update(self._pending_acl)
            self._public.update(self._pending_public)
            for raw in self._consumed:
                self._uploads.pop(raw, None)
            self._end_call()
        if dropped:
            self.logger.debug("Dropped ungranted ciphertexts", count=dropped)

    def rollback(self) -> None:
        with self._lock:
            discarded = len(self._pending_store)
            self._end_call()
        if discarded:
            self.logger.debug("Discarded staged ciphertexts", count=discarded)

    def _end_call(self) -> None:
        self._pending_store.clear()
        self._pending_acl.clear()
        self._pending_public.clear()
        self._transient.clear()
        self._consumed.clear()
        self._in_call = False

    def _require_call(self) -> None:
        if not self._in_call:
            raise BackendRejection("Operation requires an active call")

    # Sealing

    def _seal(self, handle: CiphertextHandle, value: int) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, value.to_bytes(2, "big"), handle.raw)

    def _unseal(self, handle: CiphertextHandle) -> int:
        blob = self._pending_store.get(handle.raw) or self._store.get(handle.raw)
        if blob is None:
            raise BackendRejection(
                "Unknown ciphertext handle",
                details={"handle": handle.hex()}
            )
        try:
            plaintext = self._aead.decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], handle.raw)
        except InvalidTag:
            raise BackendRejection(
                "Ciphertext integrity check failed",
                details={"handle": handle.hex()}
            ) from None
        return int.from_bytes(plaintext, "big")

    def _produce(self, executor: str, fhe_type: FheType, value: int) -> CiphertextHandle:
        handle = CiphertextHandle.generate(fhe_type)
        self._pending_store[handle.raw] = self._seal(handle, value)
        self._transient.add((handle.raw, executor))
        return handle

    # ACL checks

    def _usable(self, handle: CiphertextHandle, principal: str) -> bool:
        key = (handle.raw, principal)
        return key in self._transient or key in self._acl or key in self._pending_acl

    def _require_usable(self, executor: str, *handles: CiphertextHandle) -> None:
        for handle in handles:
            if not self._usable(handle, executor):
                raise BackendRejection(
                    "Handle is not usable by executor",
                    details={"handle": handle.hex(), "executor": executor}
                )

    def _require_same_type(self, lhs: CiphertextHandle, rhs: CiphertextHandle) -> None:
        if lhs.fhe_type != rhs.fhe_type:
            raise BackendRejection(
                "Operand type mismatch",
                details={"lhs": lhs.fhe_type.name, "rhs": rhs.fhe_type.name}
            )

    # Input ingestion

    def _proof_tag(self, contract: str, user: str, handles: Sequence[CiphertextHandle]) -> hmac.HMAC:
        mac = hmac.HMAC(self._proof_key, hashes.SHA256())
        mac.update(PROOF_DOMAIN)
        for part in (contract.encode(), user.encode()):
            mac.update(len(part).to_bytes(2, "big"))
            mac.update(part)
        for handle in handles:
            mac.update(handle.raw)
        return mac

    def encrypt_inputs(self, contract: str, user: str,
                       values: Sequence[Tuple[FheType, PlainValue]]) -> Tuple[List[CiphertextHandle], bytes]:
        """Client-side upload: seal values and issue one joint proof.

        This is the counterpart of an applicant encrypting locally and
        uploading ciphertexts; it is not part of any ledger call and the
        resulting handles carry no grants until a call binds them. Each
        upload is consumed by the first committed call that binds it; when
        more than ``max_uploads`` are waiting the oldest are evicted.
        """
        if not values:
            raise ValidationError("At least one input is required")
        if len(values) > MAX_INPUTS_PER_PROOF:
            raise ValidationError(
                "Too many inputs for one proof",
                details={"max": MAX_INPUTS_PER_PROOF}
            )

        checked = [(fhe_type, _check_range(value, fhe_type)) for fhe_type, value in values]
        handles = []
        with self._lock:
            for fhe_type, value in checked:
                handle = CiphertextHandle.generate(fhe_type)
                self._uploads[handle.raw] = self._seal(handle, value)
                handles.append(handle)
            evicted = 0
            while len(self._uploads) > self.max_uploads:
                self._uploads.popitem(last=False)
                evicted += 1
        if evicted:
            self.logger.warning("Evicted unbound uploads", count=evicted, max_uploads=self.max_uploads)

        tag = self._proof_tag(contract, user, handles).finalize()
        return handles, encode_proof(handles, tag)

    def from_external(self, executor: str, caller: str, handle: CiphertextHandle,
                      proof: bytes, expected_type: FheType) -> CiphertextHandle:
        self._require_call()
        handles, tag = decode_proof(proof)

        try:
            self._proof_tag(executor, caller, handles).verify(tag)
        except InvalidSignature:
            raise ValidationError(
                "Input proof verification failed",
                details={"caller": caller}
            ) from None

        if handle not in handles:
            raise ValidationError(
                "Input is not covered by the proof",
                details={"handle": handle.hex()}
            )
        if handle.fhe_type != expected_type:
            raise ValidationError(
                "Input type does not match",
                details={"expected": expected_type.name, "actual": handle.fhe_type.name}
            )
        with self._lock:
            blob = self._uploads.get(handle.raw) or self._pending_store.get(handle.raw)
            if blob is None:
                raise BackendRejection(
                    "Input ciphertext was never uploaded or is already consumed",
                    details={"handle": handle.hex()}
                )
            self._pending_store[handle.raw] = blob
            self._consumed.add(handle.raw)

        self._transient.add((handle.raw, executor))
        return handle

    # Operators

    def trivial_encrypt(self, executor: str, value: int, fhe_type: FheType) -> CiphertextHandle:
        self._require_call()
        return self._produce(executor, fhe_type, _check_range(value, fhe_type))

    def ge(self, executor: str, lhs: CiphertextHandle, rhs: CiphertextHandle) -> CiphertextHandle:
        self._require_call()
        self._require_usable(executor, lhs, rhs)
        self._require_same_type(lhs, rhs)
        return self._produce(executor, FheType.EBOOL, int(self._unseal(lhs) >= self._unseal(rhs)))

    def le(self, executor: str, lhs: CiphertextHandle, rhs: CiphertextHandle) -> CiphertextHandle:
        self._require_call()
        self._require_usable(executor, lhs, rhs)
        self._require_same_type(lhs, rhs)
        return self._produce(executor, FheType.EBOOL, int(self._unseal(lhs) <= self._unseal(rhs)))

    def and_(self, executor: str, lhs: CiphertextHandle, rhs: CiphertextHandle) -> CiphertextHandle:
        self._require_call()
        self._require_usable(executor, lhs, rhs)
        for operand in (lhs, rhs):
            if operand.fhe_type != FheType.EBOOL:
                raise BackendRejection(
                    "Logical AND requires encrypted booleans",
                    details={"handle": operand.hex(), "type": operand.fhe_type.name}
                )
        return self._produce(executor, FheType.EBOOL, self._unseal(lhs) & self._unseal(rhs))

    # Grants

    def allow(self, executor: str, handle: CiphertextHandle, principal: str) -> None:
        self._require_call()
        self._require_usable(executor, handle)
        self._pending_acl.add((handle.raw, principal))

    def allow_this(self, executor: str, handle: CiphertextHandle) -> None:
        self.allow(executor, handle, executor)

    def make_publicly_decryptable(self, executor: str, handle: CiphertextHandle) -> None:
        self._require_call()
        self._require_usable(executor, handle)
        self._pending_public.add(handle.raw)

    # Committed-state queries; grants staged by an unfinished call are invisible here

    def is_allowed(self, handle: CiphertextHandle, principal: str) -> bool:
        with self._lock:
            return (handle.raw, principal) in self._acl

    def is_publicly_decryptable(self, handle: CiphertextHandle) -> bool:
        with self._lock:
            return handle.raw in self._public

    def acl_state(self) -> Tuple[FrozenSet[Tuple[bytes, str]], FrozenSet[bytes]]:
        """Committed grants and public marks, for audits and tests."""
        with self._lock:
            return frozenset(self._acl), frozenset(self._public)

    def storage_stats(self) -> Dict[str, int]:
        """Sizes of the committed ciphertext store and the upload area."""
        with self._lock:
            return {"ciphertexts": len(self._store), "uploads": len(self._uploads)}

    # Key-holder path

    def decrypt(self, handle: CiphertextHandle) -> PlainValue:
        """Reveal a committed value.

        Only the decryption relayer calls this, after checking grants. The
        eligibility core never does.
        """
        with self._lock:
            blob = self._store.get(handle.raw)
            if blob is None:
                raise BackendRejection(
                    "Unknown ciphertext handle",
                    details={"handle": handle.hex()}
                )
            value = self._unseal(handle)
        return bool(value) if handle.fhe_type == FheType.EBOOL else value
