"""
Extension Point Registry
========================
Ordered collection of registered extension points, per extension point kind.

Ordering:
- Position bands, first applied to last applied:
  OUTERMOST < OUTSIDE_DEFAULT < DEFAULT < INSIDE_DEFAULT < INNERMOST
- Within a band: registration order
- A nested registry sees its ancestors' entries first, then its own, and the
  bands are applied across the whole chain

Constraints:
- At most one OUTERMOST entry per kind across the whole chain; a second one
  fails immediately with ExtensionConfigurationException
- A failed registration adds nothing, for none of the implementation's kinds

Usage:
    registry = ExtensionPointRegistry()
    registry.register(TimingExtension(), position=Position.OUTERMOST)
    registry.register(lambda context: print(context.display_name), BeforeEachCallback)

    nested = ExtensionPointRegistry(parent=registry)
    for callback in nested.all_for(BeforeEachCallback):
        callback.before_each(context)
"""
from __future__ import annotations

import importlib
import itertools
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable, List, Optional, Set, Type

from trellis.extension.extension_points import ExtensionPoint, ExtensionRegistrar, is_extension_type

logger = logging.getLogger(__name__)


class ExtensionConfigurationException(Exception):
    """Raised when an extension point registration is illegal."""


class Position(IntEnum):
    """
    Relative position of an extension point among its peers.

    Lower values are applied first (outermost) and, in reverse traversal,
    last.
    """
    OUTERMOST = 1
    OUTSIDE_DEFAULT = 2
    DEFAULT = 3
    INSIDE_DEFAULT = 4
    INNERMOST = 5


@dataclass(frozen=True)
class RegisteredExtensionPoint:
    """
    One registration entry.

    Attributes:
        kind: The extension point kind the entry is registered for
        extension_point: The implementation (object or adapted function)
        position: Position band
        source: Extension that registered the entry, or None
        sequence: Registration order within the owning registry
    """

    kind: Type[ExtensionPoint]
    extension_point: Any
    position: Position
    source: Any = None
    sequence: int = 0


class ExtensionPointRegistry:
    """
    Registry of extension points, optionally inheriting from a parent registry.

    Entries are never mutated after registration.
    """

    def __init__(self, parent: Optional["ExtensionPointRegistry"] = None):
        self.parent = parent
        self._entries: List[RegisteredExtensionPoint] = []
        self._extension_types: Set[type] = set()
        self._sequence = itertools.count()

    @classmethod
    def new_registry_from(
        cls,
        parent: Optional["ExtensionPointRegistry"],
        extension_types: Iterable[Any] = (),
    ) -> "ExtensionPointRegistry":
        """Create a child registry of ``parent`` holding ``extension_types``."""
        registry = cls(parent)
        for extension in extension_types:
            registry.register_extension(extension)
        return registry

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(
        self,
        implementation: Any,
        kind: Optional[Type[ExtensionPoint]] = None,
        *,
        position: Position = Position.DEFAULT,
        source: Any = None,
    ) -> List[RegisteredExtensionPoint]:
        """
        Register an extension point implementation.

        Without ``kind`` the implementation is registered for every kind it
        implements. With ``kind`` it is registered for that kind only; a plain
        callable is adapted to the kind's single method.

        Raises:
            ExtensionConfigurationException: for unknown kinds, non-extension
                implementations or a second OUTERMOST entry of a kind
        """
        position = Position(position)
        implementation = self._adapt(implementation, kind)
        kinds = [kind] if kind is not None else type(implementation).kinds()
        for extension_kind in kinds:
            self._check_position(extension_kind, position, implementation)

        entries = []
        for extension_kind in kinds:
            entry = RegisteredExtensionPoint(
                kind=extension_kind,
                extension_point=implementation,
                position=position,
                source=source,
                sequence=next(self._sequence),
            )
            self._entries.append(entry)
            entries.append(entry)
            logger.debug(
                "Registered %r for %s at %s", implementation, extension_kind.__name__, position.name
            )
        return entries

    def _adapt(self, implementation: Any, kind: Optional[Type[ExtensionPoint]]) -> ExtensionPoint:
        if kind is not None:
            if not (isinstance(kind, type) and ExtensionPoint in kind.__bases__):
                raise ExtensionConfigurationException(f"{kind!r} is not an extension point kind")
            if isinstance(implementation, kind):
                return implementation
            if callable(implementation) and not isinstance(implementation, ExtensionPoint):
                try:
                    return kind.from_function(implementation)
                except TypeError as e:
                    raise ExtensionConfigurationException(str(e)) from e
            raise ExtensionConfigurationException(
                f"{implementation!r} does not implement {kind.__name__}"
            )

        if not isinstance(implementation, ExtensionPoint):
            raise ExtensionConfigurationException(
                f"{implementation!r} is not an extension point; "
                "pass the extension point kind to register a function"
            )
        return implementation

    def _check_position(self, kind: Type[ExtensionPoint], position: Position, implementation: Any) -> None:
        if position != Position.OUTERMOST:
            return
        for entry in self.registered_for(kind):
            if entry.position == Position.OUTERMOST:
                raise ExtensionConfigurationException(
                    f"Cannot register {implementation!r} as OUTERMOST {kind.__name__}: "
                    f"{entry.extension_point!r} already holds that position"
                )

    def register_extension(self, extension: Any) -> None:
        """
        Register an extension type or instance.

        Types are instantiated without arguments. Registrars register their
        own extension points; plain extension points go in at DEFAULT. An
        extension type already present in this registry or an ancestor is
        skipped. An extension that fails to register leaves no entries behind.
        """
        extension_type = extension if isinstance(extension, type) else type(extension)
        if self.is_registered(extension_type):
            logger.debug("Extension %s already registered, skipping", extension_type.__name__)
            return

        if not issubclass(extension_type, (ExtensionRegistrar, ExtensionPoint)):
            raise ExtensionConfigurationException(
                f"{extension_type.__name__} is neither an extension point nor an extension registrar"
            )

        instance = extension() if isinstance(extension, type) else extension

        registered = len(self._entries)
        try:
            if isinstance(instance, ExtensionRegistrar):
                instance.register_extensions(_SourceBoundRegistry(self, instance))
            if isinstance(instance, ExtensionPoint):
                self.register(instance, source=instance)
        except ExtensionConfigurationException:
            del self._entries[registered:]
            raise
        self._extension_types.add(extension_type)

    def is_registered(self, extension_type: type) -> bool:
        if extension_type in self._extension_types:
            return True
        return self.parent is not None and self.parent.is_registered(extension_type)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def _chain_entries(self, kind: Type[ExtensionPoint]) -> List[RegisteredExtensionPoint]:
        inherited = self.parent._chain_entries(kind) if self.parent is not None else []
        own = [entry for entry in self._entries if entry.kind is kind]
        return inherited + own

    def registered_for(self, kind: Type[ExtensionPoint], reverse: bool = False) -> List[RegisteredExtensionPoint]:
        """Entries for ``kind`` across the chain, sorted by position band."""
        # sorted() is stable: ancestors first, then registration order within a band
        entries = sorted(self._chain_entries(kind), key=lambda entry: entry.position)
        if reverse:
            entries.reverse()
        return entries

    def all_for(self, kind: Type[ExtensionPoint], reverse: bool = False) -> List[Any]:
        """Implementations for ``kind``, outermost first (innermost first if ``reverse``)."""
        return [entry.extension_point for entry in self.registered_for(kind, reverse)]

    def __len__(self) -> int:
        return len(self._entries)


class _SourceBoundRegistry:
    """Registry facade handed to registrars; records the registrar as source."""

    def __init__(self, registry: ExtensionPointRegistry, source: Any):
        self._registry = registry
        self._source = source

    def register(self, implementation: Any, kind: Optional[Type[ExtensionPoint]] = None, *, position: Position = Position.DEFAULT):
        return self._registry.register(implementation, kind, position=position, source=self._source)


def load_extension(path: str) -> type:
    """
    Load an extension type from a ``module:Class`` path.

    Raises:
        ExtensionConfigurationException: if the path cannot be imported
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ExtensionConfigurationException(f"Extension path must look like 'module:Class', got '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ExtensionConfigurationException(f"Cannot import extension module '{module_name}': {e}") from e
    extension = getattr(module, attribute, None)
    if extension is None:
        raise ExtensionConfigurationException(f"Module '{module_name}' has no extension '{attribute}'")
    if not is_extension_type(extension):
        raise ExtensionConfigurationException(f"'{path}' is not an extension type")
    return extension


def create_root_registry(extension_paths: Iterable[str] = ()) -> ExtensionPointRegistry:
    """Root registry holding the configured default extensions."""
    registry = ExtensionPointRegistry()
    for path in extension_paths:
        registry.register_extension(load_extension(path))
    return registry
