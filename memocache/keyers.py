"""Fingerprinting: turning a function identity plus its arguments into a stable cache key.

The key for a call is computed as follows:

1. The arguments are normalized into a sequence (see `normalize_args()`): lists and tuples are
   used as-is, anything else is wrapped in a one-element tuple. This is what makes `put(c, 'foo',
   v)` and `put(c, ['foo'], v)` address the same entry.
2. The display name of the function (see `get_fn_name()`) is appended as the final element.
   Keyword arguments, if any, go in a single element just before the name.
3. The resulting sequence is serialized to canonical JSON (sorted keys, no whitespace).
4. That string is hashed (MD5 by default) and rendered as lowercase hex.

Note that the function identity is only its display name, so two different functions with the
same module and qualified name (say, one redefined in place) will share cache entries. Lambdas
and closures are named by their `repr()`, so each instance gets its own entries.
"""

from __future__ import annotations

import hashlib
import json

from abc import ABC, abstractmethod
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Generic

from memocache.constants import KeyT

# the fn name used for direct put/get/contains calls, which don't go through any function
MANUAL_FN_NAME = 'nofn-manual'

KWARGS_KEY = '__kwargs__'


def get_fn_name(fn: Callable|str|None) -> str:
    """Returns the display name we use to identify `fn` in cache keys.

    This is `module.qualname` for normal functions and methods. Callables without a qualname
    (partials, callable instances) fall back to their `repr()`, which is stable for as long as the
    object is alive. So do lambdas and closures: their qualnames (`<lambda>`, `f.<locals>.g`) are
    shared by every instance, so the name alone would mix up their entries. Strings are returned
    as-is, and None maps to `MANUAL_FN_NAME`.
    """
    if fn is None:
        return MANUAL_FN_NAME
    if isinstance(fn, str):
        return fn
    qualname = getattr(fn, '__qualname__', None)
    if qualname is None or '<lambda>' in qualname or '<locals>' in qualname:
        return repr(fn)
    module = getattr(fn, '__module__', None)
    return f'{module}.{qualname}' if module else qualname


def normalize_args(args: Any) -> tuple:
    """Coerces `args` into a tuple of arguments.

    Lists and tuples are treated as the argument sequence itself; any other value (including
    strings, bytes and dicts) becomes a single argument.
    """
    if isinstance(args, (list, tuple)):
        return tuple(args)
    return (args,)


class CanonicalJSONEncoder(json.JSONEncoder):
    """JSON encoder for leaf values that json can't handle natively.

    Currently:
    - datetime/date: isoformat
    - dataclasses: converts to dict using `asdict()`
    - Enum: converts to its value
    - set/frozenset: sorted list (by canonical form of each element)
    - everything else: its `repr()`
    """
    def default(self, obj):
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if is_dataclass(obj) and not isinstance(obj, type):
            return canonicalize(asdict(obj))
        if isinstance(obj, Enum):
            return canonicalize(obj.value)
        if isinstance(obj, (set, frozenset)):
            return sorted((canonicalize(x) for x in obj), key=dumps_canonical)
        return repr(obj)


def canonicalize(obj: Any) -> Any:
    """Recursively converts containers into a form that serializes deterministically.

    Tuples become lists, and dict keys become strings (non-string keys are tagged with their type
    so that `{1: x}` and `{'1': x}` stay distinct).
    """
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    if isinstance(obj, dict):
        return {
            (k if isinstance(k, str) else f'{type(k).__name__}:{k!r}'): canonicalize(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (set, frozenset)):
        return sorted((canonicalize(x) for x in obj), key=dumps_canonical)
    return obj


def dumps_canonical(obj: Any) -> str:
    """Serializes `obj` to canonical JSON."""
    return json.dumps(
        canonicalize(obj),
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False,
        cls=CanonicalJSONEncoder,
    )


class Keyer(ABC, Generic[KeyT]):
    """Base class for converting function arguments into cache keys."""
    @abstractmethod
    def make_key(self, fn: Callable|str|None, args: tuple, kwargs: dict|None = None) -> KeyT:
        """Convert function arguments into a cache key.

        Args:
            fn: Function being cached, its display name, or None for the manual namespace
            args: Tuple of positional arguments
            kwargs: Dict of keyword arguments

        Returns:
            A key suitable for the cache backend
        """
        pass


class StringKeyer(Keyer[str]):
    """Converts function arguments into a canonical JSON string.

    The string encodes the list `[*args, {'__kwargs__': kwargs}, fn_name]`, where the kwargs
    element is only present if there are kwargs.
    """
    def make_key(self, fn: Callable|str|None, args: tuple, kwargs: dict|None = None) -> str:
        elements = list(normalize_args(args))
        if kwargs:
            elements.append({KWARGS_KEY: kwargs})
        elements.append(get_fn_name(fn))
        return dumps_canonical(elements)


class HashStringKeyer(Keyer[str]):
    """Keyer that hashes the output of a `StringKeyer` and returns a hex digest.

    The input `hash_func` should be either:

    - A string naming a `hashlib` algorithm (e.g. 'md5', 'sha256')
    - A callable that takes a string and returns the key directly

    Defaults to 'md5', which gives 32-character keys.
    """
    def __init__(self, hash_func: str|Callable[[str], str] = 'md5'):
        self._string_maker = StringKeyer()
        if isinstance(hash_func, str):
            if not hasattr(hashlib, hash_func):
                raise ValueError(f"Hash algorithm '{hash_func}' not found in hashlib")
            algorithm = getattr(hashlib, hash_func)
            self._hash_func = lambda s: algorithm(s.encode('utf-8')).hexdigest()
        else:
            self._hash_func = hash_func

    def make_key(self, fn: Callable|str|None, args: tuple, kwargs: dict|None = None) -> str:
        return self._hash_func(self._string_maker.make_key(fn, args, kwargs))


_default_keyer = HashStringKeyer()


def fingerprint(fn: Callable|str|None, args: Any, kwargs: dict|None = None) -> str:
    """Returns the default cache key for calling `fn` with `args` (and `kwargs`)."""
    return _default_keyer.make_key(fn, normalize_args(args), kwargs)
