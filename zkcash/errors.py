"""
zkcash — errors
---------------

A small, consistent error system for the shielded pool.

Design goals
------------
- One root `PoolError` with a machine-stable `code` and optional `data`.
- One thin subclass per error code so callers can `except UnknownRoot:`.
- A coarse `category` per code (config / capacity / verification /
  double_spend / funds / decode) for operators and logs.
- Safe JSON representation (`to_dict`) suitable for logs and the CLI.

Every error raised by the core is a deterministic function of (state, input):
nothing here is retryable without changing the call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Type

# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------


class PoolErrorCode(str, Enum):
    # Configuration / lifecycle
    ALREADY_INITIALIZED = "AlreadyInitialized"
    NOT_INITIALIZED = "NotInitialized"
    INVALID_DEPTH = "InvalidDepth"
    INVALID_CONFIG = "InvalidConfig"

    # Capacity
    CAPACITY_EXCEEDED = "CapacityExceeded"

    # Verification
    UNKNOWN_ROOT = "UnknownRoot"
    INVALID_PROOF = "InvalidProof"
    INVALID_PUBLIC_INPUT_ENCODING = "InvalidPublicInputEncoding"

    # Double spend
    NULLIFIER_ALREADY_USED = "NullifierAlreadyUsed"

    # Funds
    INVALID_AMOUNT = "InvalidAmount"
    INSUFFICIENT_FUNDS = "InsufficientFunds"

    # Decoding of payloads / persisted records
    INVALID_INSTRUCTION = "InvalidInstruction"
    INVALID_STATE = "InvalidState"


_CATEGORY: Dict[PoolErrorCode, str] = {
    PoolErrorCode.ALREADY_INITIALIZED: "config",
    PoolErrorCode.NOT_INITIALIZED: "config",
    PoolErrorCode.INVALID_DEPTH: "config",
    PoolErrorCode.INVALID_CONFIG: "config",
    PoolErrorCode.CAPACITY_EXCEEDED: "capacity",
    PoolErrorCode.UNKNOWN_ROOT: "verification",
    PoolErrorCode.INVALID_PROOF: "verification",
    PoolErrorCode.INVALID_PUBLIC_INPUT_ENCODING: "verification",
    PoolErrorCode.NULLIFIER_ALREADY_USED: "double_spend",
    PoolErrorCode.INVALID_AMOUNT: "funds",
    PoolErrorCode.INSUFFICIENT_FUNDS: "funds",
    PoolErrorCode.INVALID_INSTRUCTION: "decode",
    PoolErrorCode.INVALID_STATE: "decode",
}

# Stable numeric codes, the shape an on-chain runtime reports (Custom(n)).
_NUMERIC: Dict[PoolErrorCode, int] = {code: i for i, code in enumerate(PoolErrorCode, start=1)}


# ---------------------------------------------------------------------------
# Root error
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class PoolError(Exception):
    """
    Root error for the shielded pool.

    Attributes
    ----------
    code: PoolErrorCode
        Machine-stable error code.
    message: str
        Human hint suitable for logs; never contains note secrets.
    data: dict
        Optional machine data (roots, indices, sizes). JSON-serializable.
    cause: Optional[BaseException]
        Wrapped original exception; not serialized.
    """

    code: PoolErrorCode
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{self.code.value}: {self.message}")

    @property
    def category(self) -> str:
        return _CATEGORY[self.code]

    @property
    def numeric_code(self) -> int:
        return _NUMERIC[self.code]

    @property
    def retryable(self) -> bool:
        return False

    def with_context(self, **ctx: Any) -> "PoolError":
        """Return a *new* error with extra context merged (does not mutate)."""
        d = dict(self.data)
        d.update({k: _coerce_json(v) for k, v in ctx.items()})
        if type(self) is PoolError:
            return PoolError(code=self.code, message=self.message, data=d, cause=self.cause)
        return type(self)(self.message, **d)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "numeric_code": self.numeric_code,
            "category": self.category,
            "message": self.message,
            "data": _coerce_json(self.data),
        }

    def __str__(self) -> str:
        parts = [f"{self.code.value}: {self.message}"]
        if self.data:
            parts.append("[" + ", ".join(f"{k}={v}" for k, v in self.data.items()) + "]")
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Concrete subclasses
# ---------------------------------------------------------------------------


def _make(code: PoolErrorCode, default_message: str) -> Callable[..., None]:
    def __init__(self, message: str = default_message, **data: Any) -> None:
        PoolError.__init__(self, code=code, message=message, data=_jsonmap(data))

    return __init__


class AlreadyInitialized(PoolError):
    __init__ = _make(PoolErrorCode.ALREADY_INITIALIZED, "pool is already initialized")


class NotInitialized(PoolError):
    __init__ = _make(PoolErrorCode.NOT_INITIALIZED, "pool is not initialized")


class InvalidDepth(PoolError):
    __init__ = _make(PoolErrorCode.INVALID_DEPTH, "merkle tree depth out of range")


class InvalidConfig(PoolError):
    __init__ = _make(PoolErrorCode.INVALID_CONFIG, "invalid configuration")


class CapacityExceeded(PoolError):
    __init__ = _make(PoolErrorCode.CAPACITY_EXCEEDED, "merkle tree is full")


class UnknownRoot(PoolError):
    __init__ = _make(PoolErrorCode.UNKNOWN_ROOT, "root is not in the recent root history")


class InvalidProof(PoolError):
    __init__ = _make(PoolErrorCode.INVALID_PROOF, "proof verification failed")


class InvalidPublicInputEncoding(PoolError):
    __init__ = _make(
        PoolErrorCode.INVALID_PUBLIC_INPUT_ENCODING,
        "value is not a canonical field element",
    )


class NullifierAlreadyUsed(PoolError):
    __init__ = _make(PoolErrorCode.NULLIFIER_ALREADY_USED, "nullifier has already been spent")


class InvalidAmount(PoolError):
    __init__ = _make(PoolErrorCode.INVALID_AMOUNT, "amount must be a positive u64")


class InsufficientFunds(PoolError):
    __init__ = _make(PoolErrorCode.INSUFFICIENT_FUNDS, "insufficient funds")


class InvalidInstruction(PoolError):
    __init__ = _make(PoolErrorCode.INVALID_INSTRUCTION, "malformed instruction payload")


class InvalidState(PoolError):
    __init__ = _make(PoolErrorCode.INVALID_STATE, "malformed pool state record")


ERROR_TYPES: Mapping[PoolErrorCode, Type[PoolError]] = {
    PoolErrorCode.ALREADY_INITIALIZED: AlreadyInitialized,
    PoolErrorCode.NOT_INITIALIZED: NotInitialized,
    PoolErrorCode.INVALID_DEPTH: InvalidDepth,
    PoolErrorCode.INVALID_CONFIG: InvalidConfig,
    PoolErrorCode.CAPACITY_EXCEEDED: CapacityExceeded,
    PoolErrorCode.UNKNOWN_ROOT: UnknownRoot,
    PoolErrorCode.INVALID_PROOF: InvalidProof,
    PoolErrorCode.INVALID_PUBLIC_INPUT_ENCODING: InvalidPublicInputEncoding,
    PoolErrorCode.NULLIFIER_ALREADY_USED: NullifierAlreadyUsed,
    PoolErrorCode.INVALID_AMOUNT: InvalidAmount,
    PoolErrorCode.INSUFFICIENT_FUNDS: InsufficientFunds,
    PoolErrorCode.INVALID_INSTRUCTION: InvalidInstruction,
    PoolErrorCode.INVALID_STATE: InvalidState,
}


def from_dict(d: Mapping[str, Any]) -> PoolError:
    """Rebuild a typed error from `to_dict()` output."""
    code = PoolErrorCode(d["code"])
    cls = ERROR_TYPES[code]
    return cls(str(d.get("message", "")), **dict(d.get("data") or {}))


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _coerce_json(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return "0x" + bytes(v).hex()
    if isinstance(v, Mapping):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set)):
        return [_coerce_json(x) for x in v]
    return str(v)


def _jsonmap(m: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in m.items()}


__all__ = [
    "PoolErrorCode",
    "PoolError",
    "AlreadyInitialized",
    "NotInitialized",
    "InvalidDepth",
    "InvalidConfig",
    "CapacityExceeded",
    "UnknownRoot",
    "InvalidProof",
    "InvalidPublicInputEncoding",
    "NullifierAlreadyUsed",
    "InvalidAmount",
    "InsufficientFunds",
    "InvalidInstruction",
    "InvalidState",
    "ERROR_TYPES",
    "from_dict",
]
