"""Error taxonomy for shared maps.

Three kinds of failure reach a caller:

- **Invalid argument**: a ``None`` (or non-string) identifier, key, or
  value.  Raised before any remote call is issued.
- **Lifecycle misuse**: an operation on a handle that has already been
  released.
- **Transport failure**: anything the store client raises.  These are
  not wrapped; they propagate unmodified.
"""


class SharedMapError(Exception):
    """Raise when a shared map operation fails."""


class InvalidArgumentError(SharedMapError, ValueError):
    """Raise when a ``None`` or malformed argument reaches a map operation."""


class HandleReleasedError(SharedMapError, RuntimeError):
    """Raise when a released handle is used."""


class StoreError(SharedMapError):
    """Raise when a store backend cannot be selected or configured."""


def require_str(obj: object, *, what: str) -> str:
    """Return *obj* if it is a string, else raise InvalidArgumentError.

    Args:
        obj: The argument to check.
        what: Name of the argument, used in the error message.

    Returns:
        The argument, unchanged.

    Raises:
        InvalidArgumentError: If *obj* is ``None`` or not a ``str``.

    """
    if obj is None:
        msg = f"Argument '{what}' can't be None"
        raise InvalidArgumentError(msg)
    if not isinstance(obj, str):
        msg = f"Argument '{what}' must be a str, got {type(obj).__name__}"
        raise InvalidArgumentError(msg)
    return obj
