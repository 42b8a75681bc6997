from typing import TypeVar
from collections.abc import Mapping, Sequence

T = TypeVar('T')


def _replace_tuple(v: tuple[T, ...], i: int, d: T) -> tuple[T, ...]:
  """Return a new tuple where index `i` is replaced with `d`.

  This helper keeps code that needs to update a single element of an
  immutable tuple concise and avoids the common pattern `lst = list(t); lst[i]=d; t=tuple(lst)`.
  """
  if not (0 <= i < len(v)):
    raise IndexError("index out of range")
  return v[:i] + (d,) + v[i+1:]


def _replace_level(m: Mapping[int, T], level: int, d: T) -> dict[int, T]:
  """Return a copy of a level-keyed mapping with `level` replaced by `d`."""
  out = dict(m)
  out[level] = d
  return out


def _dedupe(items: Sequence[T]) -> list[T]:
  """Drop repeated items while keeping first-seen order."""
  seen: list[T] = []
  for item in items:
    if item not in seen:
      seen.append(item)
  return seen
