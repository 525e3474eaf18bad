"""Process-wide registry of known enumerations.

Manifesto:
    Enumeration contents can change whenever the database does (a migration,
    a restore, a code reload).  The registry remembers every initialized
    enumeration by identity so that all of them can be re-resolved and
    re-synchronized in one call, instead of each caller tracking its own.

Identities have the form ``module:qualname`` (``app.models:Color``).  Such
an identity can be re-resolved by import after a reload; the resolved
object must be a ``PersistentEnum`` or carry one as ``__persistent_enum__``
(mapped classes do, after ``acts_as_enum``).  Identities without ``:`` are
process-local and are only re-synchronized, never re-resolved.

Examples:
    >>> registry = EnumRegistry()
    >>> registry.identities()
    []

Tags:
    persistent-enum, registry, reload, thread-safe

Doc-Types:
    api-reference
"""

from __future__ import annotations

import importlib
import threading
from typing import TYPE_CHECKING

from persistent_enum.errors import UnresolvableEnumerationError
from persistent_enum.logging import get_logger

if TYPE_CHECKING:
    from persistent_enum.holder import PersistentEnum

logger = get_logger(__name__)


def resolve_enumeration(identity: str) -> PersistentEnum:
    """Import the object named by a ``module:qualname`` identity.

    Raises:
        UnresolvableEnumerationError: the module or attribute is gone, or it
            is not a persistent enumeration.
    """
    from persistent_enum.holder import PersistentEnum

    module_name, sep, qualname = identity.partition(":")
    if not sep or not module_name or not qualname:
        raise UnresolvableEnumerationError(identity, f"'{identity}' is not a module:qualname identity")

    try:
        target = importlib.import_module(module_name)
        for part in qualname.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as exc:
        raise UnresolvableEnumerationError(identity) from exc

    holder = getattr(target, "__persistent_enum__", target)
    if not isinstance(holder, PersistentEnum):
        raise UnresolvableEnumerationError(
            identity, f"'{identity}' resolved to {type(target).__name__}, not a persistent enum"
        )
    return holder


class EnumRegistry:
    """Thread-safe map of identity to enumeration holder.

    One reentrant lock guards every access; ``reinitialize_enumerations``
    holds it while each holder re-synchronizes, and re-synchronization may
    register again.
    """

    def __init__(self) -> None:
        self._enums: dict[str, PersistentEnum] = {}
        self._lock = threading.RLock()

    def register(self, holder: PersistentEnum, identity: str | None = None) -> None:
        """Add a holder, replacing any previous holder with the same identity."""
        identity = identity or holder.identity
        with self._lock:
            previous = self._enums.get(identity)
            self._enums[identity] = holder
        if previous is not None and previous is not holder:
            logger.debug("enum_replaced", enum=identity)
        elif previous is None:
            logger.debug("enum_registered", enum=identity)

    def get(self, identity: str) -> PersistentEnum | None:
        with self._lock:
            return self._enums.get(identity)

    def identities(self) -> list[str]:
        with self._lock:
            return list(self._enums)

    def unregister(self, identity: str) -> None:
        with self._lock:
            self._enums.pop(identity, None)

    def reinitialize_enumerations(self) -> list[str]:
        """Re-synchronize every registered enumeration; return their identities."""
        with self._lock:
            holders = list(self._enums.items())
            for identity, holder in holders:
                holder.reinitialize()
        logger.info("enums_reinitialized", count=len(holders))
        return [identity for identity, _ in holders]

    def rerequire_known_enumerations(self) -> list[str]:
        """Re-resolve every ``module:qualname`` identity and swap in its holder.

        Raises:
            UnresolvableEnumerationError: an identity no longer resolves.
        """
        resolved = []
        with self._lock:
            for identity in list(self._enums):
                if ":" not in identity:
                    continue
                self.register(resolve_enumeration(identity), identity)
                resolved.append(identity)
        return resolved

    def reload(self) -> list[str]:
        """Re-resolve, then re-synchronize, everything registered."""
        with self._lock:
            self.rerequire_known_enumerations()
            return self.reinitialize_enumerations()

    def clear(self) -> None:
        """Forget every enumeration (mainly for testing)."""
        with self._lock:
            self._enums.clear()

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._enums

    def __len__(self) -> int:
        with self._lock:
            return len(self._enums)


# Global registry instance
_registry = EnumRegistry()


def get_registry() -> EnumRegistry:
    return _registry


def register_enumeration(holder: PersistentEnum) -> None:
    _registry.register(holder)


def known_enumerations() -> list[str]:
    return _registry.identities()


def reinitialize_enumerations() -> list[str]:
    return _registry.reinitialize_enumerations()


def rerequire_known_enumerations() -> list[str]:
    return _registry.rerequire_known_enumerations()


def reload_enumerations() -> list[str]:
    return _registry.reload()


def clear_registry() -> None:
    """Clear registry (for testing)."""
    _registry.clear()


__all__ = [
    "EnumRegistry",
    "clear_registry",
    "get_registry",
    "known_enumerations",
    "register_enumeration",
    "reinitialize_enumerations",
    "reload_enumerations",
    "rerequire_known_enumerations",
    "resolve_enumeration",
]
