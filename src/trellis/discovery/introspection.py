"""
Introspection of declared test elements.

Answers the three questions discovery needs about a class or function:
does it carry a given marker (and with which attributes), what are its
formal parameters, and what is its enclosing class. It also loads classes
and methods back from the names used in unique IDs.

Qualified class names follow the binary-name convention: the dotted module
path, then the class qualname with nested levels joined by ``$``:

    tests.sample.Outer
    tests.sample.Outer$Inner
"""
from __future__ import annotations

import importlib
import inspect
import logging
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)

MARKERS_ATTR = "__trellis_markers__"
NESTED_SEPARATOR = "$"


class UnresolvableElementError(LookupError):
    """Raised when a declared element cannot be loaded or claimed."""


@dataclass(frozen=True)
class Marker:
    """A named marker attached to a class or function, with its attributes."""

    name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


@dataclass(frozen=True)
class FormalParameter:
    """
    A declared parameter of a test or lifecycle method.

    Attributes:
        name: Parameter name
        annotation: Evaluated annotation (inspect.Parameter.empty if absent)
        index: Position among the parameters, ``self`` excluded
        declaring_method: Qualified ``Class#method`` name for messages
        kind: inspect.Parameter kind
    """

    name: str
    annotation: Any
    index: int
    declaring_method: str
    kind: Any = inspect.Parameter.POSITIONAL_OR_KEYWORD

    @property
    def type_name(self) -> str:
        return render_type(self.annotation, self.kind)


def add_marker(element: Any, name: str, **attributes: Any) -> Any:
    """Attach a marker to ``element`` and return the element."""
    # Read the element's own namespace so a subclass never mutates its base's markers
    markers = dict(vars(element).get(MARKERS_ATTR, {}))
    existing = markers.get(name)
    if existing is not None:
        attributes = {**existing.attributes, **attributes}
    markers[name] = Marker(name, attributes)
    setattr(element, MARKERS_ATTR, markers)
    return element


class Introspector(Protocol):
    """Capability for asking questions about declared classes and members."""

    def find_marker(self, element: Any, name: str) -> Optional[Marker]:
        ...

    def has_marker(self, element: Any, name: str) -> bool:
        ...

    def formal_parameters(self, method: Any) -> List[FormalParameter]:
        ...

    def enclosing_class(self, cls: type) -> Optional[type]:
        ...


class MarkerIntrospector:
    """Default introspector reading markers attached by trellis.api decorators."""

    def find_marker(self, element: Any, name: str) -> Optional[Marker]:
        try:
            markers = vars(element).get(MARKERS_ATTR, {})
        except TypeError:
            return None
        return markers.get(name)

    def has_marker(self, element: Any, name: str) -> bool:
        return self.find_marker(element, name) is not None

    def formal_parameters(self, method: Any) -> List[FormalParameter]:
        return formal_parameters(method)

    def enclosing_class(self, cls: type) -> Optional[type]:
        return enclosing_class(cls)


def qualified_name(cls: type) -> str:
    """Render ``cls`` as ``module.Outer$Inner``."""
    return f"{cls.__module__}.{cls.__qualname__.replace('.', NESTED_SEPARATOR)}"


def is_importable(cls: type) -> bool:
    """True unless the class was defined inside a function body."""
    return "<locals>" not in cls.__qualname__


def load_class(name: str) -> type:
    """
    Load a class from its qualified name.

    Raises:
        UnresolvableElementError: if the module or any class level is missing
    """
    outer, _, nested = name.partition(NESTED_SEPARATOR)
    module_name, _, top_level = outer.rpartition(".")
    if not module_name or not top_level:
        raise UnresolvableElementError(f"Cannot load class '{name}': not a qualified class name")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise UnresolvableElementError(f"Cannot load class '{name}': {e}") from e

    current: Any = module
    for part in [top_level] + (nested.split(NESTED_SEPARATOR) if nested else []):
        current = vars(current).get(part) if inspect.ismodule(current) else _own_attribute(current, part)
        if not inspect.isclass(current):
            raise UnresolvableElementError(f"Cannot load class '{name}': '{part}' is not a class")
    return current


def _own_attribute(cls: type, name: str) -> Any:
    for klass in cls.__mro__:
        if name in vars(klass):
            return vars(klass)[name]
    return None


def enclosing_class(cls: type) -> Optional[type]:
    """Return the class ``cls`` is declared in, or None for top-level classes."""
    if not is_importable(cls) or "." not in cls.__qualname__:
        return None
    enclosing_name = qualified_name(cls).rsplit(NESTED_SEPARATOR, 1)[0]
    try:
        return load_class(enclosing_name)
    except UnresolvableElementError:
        logger.debug("Enclosing class of %s is not loadable", qualified_name(cls))
        return None


def find_members(cls: type) -> Iterator[tuple]:
    """
    Yield (name, member) pairs declared on ``cls`` and its bases.

    Members keep declaration order, base classes first; an override replaces
    the inherited member in place.
    """
    members: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, member in vars(klass).items():
            members[name] = member
    return iter(members.items())


def find_methods(cls: type) -> List[Any]:
    """Plain instance methods of ``cls``; static and class methods are skipped."""
    return [member for _, member in find_members(cls) if inspect.isfunction(member)]


def find_nested_classes(cls: type) -> List[type]:
    """Classes declared inside ``cls`` (inherited ones included)."""
    return [
        member for name, member in find_members(cls)
        if inspect.isclass(member) and member.__qualname__.endswith(f".{name}")
    ]


def find_method(cls: type, spec: str) -> Any:
    """
    Find the method of ``cls`` whose method_spec() equals ``spec``.

    Raises:
        UnresolvableElementError: if no method with that name and signature exists
    """
    name = spec.split("(", 1)[0]
    member = _own_attribute(cls, name)
    if not inspect.isfunction(member):
        raise UnresolvableElementError(f"Cannot find method '{spec}' in class '{qualified_name(cls)}'")
    actual = method_spec(member)
    if actual != spec:
        raise UnresolvableElementError(
            f"Method '{name}' in class '{qualified_name(cls)}' has signature '{actual}', expected '{spec}'"
        )
    return member


def _resolved_hints(method: Any) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(method)
    except Exception:
        # Unresolvable forward references: fall back to the raw annotations
        return {}


def formal_parameters(method: Any) -> List[FormalParameter]:
    """Declared parameters of ``method`` with ``self`` dropped."""
    signature = inspect.signature(method)
    hints = _resolved_hints(method)
    owner, _, name = method.__qualname__.rpartition(".")
    if owner:
        declaring = f"{method.__module__}.{owner.replace('.', NESTED_SEPARATOR)}#{name}"
    else:
        declaring = f"{method.__module__}.{name}"

    parameters = list(signature.parameters.values())
    if parameters and parameters[0].name == "self":
        parameters = parameters[1:]

    return [
        FormalParameter(
            name=parameter.name,
            annotation=hints.get(parameter.name, parameter.annotation),
            index=index,
            declaring_method=declaring,
            kind=parameter.kind,
        )
        for index, parameter in enumerate(parameters)
    ]


def render_type(annotation: Any, kind: Any = inspect.Parameter.POSITIONAL_OR_KEYWORD) -> str:
    """Canonical text for a parameter type, used inside method segments."""
    if annotation is inspect.Parameter.empty:
        name = "object"
    elif isinstance(annotation, str):
        name = annotation
    elif inspect.isclass(annotation) and not typing.get_args(annotation):
        name = annotation.__qualname__ if annotation.__module__ == "builtins" else qualified_name(annotation)
    else:
        name = repr(annotation)

    if kind == inspect.Parameter.VAR_POSITIONAL:
        return f"*{name}"
    if kind == inspect.Parameter.VAR_KEYWORD:
        return f"**{name}"
    return name


def method_spec(method: Any) -> str:
    """Render ``name(type1, type2)`` so that methods stay distinguishable by signature."""
    types = ", ".join(parameter.type_name for parameter in formal_parameters(method))
    return f"{method.__name__}({types})"
