"""Uniform result shape returned by every pipeline stage."""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """The stage produced a usable payload."""

    payload: T


@dataclass(frozen=True)
class Empty:
    """The service answered but had no usable data."""

    reason: str


@dataclass(frozen=True)
class Failure:
    """The call itself failed; ``cause`` is a ProfileServiceError."""

    cause: Exception


PipelineOutcome = Union[Success[T], Empty, Failure]
