"""Typed vendoring error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    MALFORMED_LOCKFILE = "E_MALFORMED_LOCKFILE"
    UNKNOWN_SOURCE_TYPE = "E_UNKNOWN_SOURCE_TYPE"
    MISSING_HASH = "E_MISSING_HASH"
    INTEGRITY = "E_INTEGRITY"
    FETCH = "E_FETCH"
    POLICY = "E_POLICY"
    GENERATOR = "E_GENERATOR"


class CargoVendorError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(CargoVendorError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class MalformedLockFileError(CargoVendorError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MALFORMED_LOCKFILE, hint=hint, context=context)


class UnknownSourceTypeError(CargoVendorError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.UNKNOWN_SOURCE_TYPE, hint=hint, context=context)


class MissingHashError(CargoVendorError):
    """No integrity value could be resolved for a package."""

    def __init__(
        self,
        message: str,
        *,
        package_id: str,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"package": package_id, **dict(context or {})}
        super().__init__(message, code=ErrorCode.MISSING_HASH, hint=hint, context=merged)
        self.package_id = package_id


class IntegrityError(CargoVendorError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INTEGRITY, hint=hint, context=context)


class FetchError(CargoVendorError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.FETCH, hint=hint, context=context)


class PolicyError(CargoVendorError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.POLICY, hint=hint, context=context)


class GeneratorError(CargoVendorError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.GENERATOR, hint=hint, context=context)


__all__ = [
    "CargoVendorError",
    "ErrorCode",
    "FetchError",
    "GeneratorError",
    "IntegrityError",
    "MalformedLockFileError",
    "MissingHashError",
    "PolicyError",
    "UnknownSourceTypeError",
    "ValidationError",
]
