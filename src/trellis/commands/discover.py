"""
Discovery CLI Command
=====================
Provides CLI interface for unique IDs and test discovery.

Commands:
- id parse: Split a unique ID into its segments
- id resolve: Resolve a unique ID to the class or method it names
- discover: Build the test tree for modules, classes, methods or unique IDs
- extensions: Show the ordered extension points of every discovered node

Usage:
    trellis id parse "[engine:trellis]/[class:tests.sample.Outer]"
    trellis id resolve "[engine:trellis]/[class:tests.sample.Outer]/[method:works()]"
    trellis discover tests.sample
    trellis discover tests.sample:Outer.Inner --format json
    trellis extensions tests.sample:Outer
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional

from trellis.discovery.descriptors import TestDescriptor, extension_registry_for
from trellis.discovery.discoverer import Discoverer, parse_selector
from trellis.discovery.introspection import UnresolvableElementError, qualified_name
from trellis.discovery.testable_resolver import TestableResolver
from trellis.discovery.unique_id import MalformedIdentifierError, UniqueId, parse_segments
from trellis.extension.extension_points import EXTENSION_POINT_KINDS
from trellis.extension.registry import (
    ExtensionConfigurationException,
    ExtensionPointRegistry,
    create_root_registry,
)
from trellis.utils.config import (
    find_project_root,
    get_default_extensions,
    get_discovery_config,
    get_engine_id,
)
from trellis.utils.diagnostics import DiagnosticLog


class DiscoveryCommand:
    """
    CLI command handler for unique ID and discovery operations.

    Configuration (engine ID, marker names) is read from
    .trellis/config.yaml under the project root.
    """

    def __init__(self, repo_root: Optional[Path] = None):
        self.repo_root = repo_root or find_project_root()
        self.engine_id = get_engine_id(self.repo_root)
        self.discovery_config = get_discovery_config(self.repo_root)
        self.diagnostics = DiagnosticLog()

    def _discoverer(self) -> Discoverer:
        return Discoverer(
            self.engine_id,
            diagnostics=self.diagnostics,
            markers=self.discovery_config["markers"],
            warn_on_contested_claims=self.discovery_config["warn_on_contested_claims"],
        )

    def parse(self, text: str, format: str = "text") -> int:
        """
        Print the segments of a unique ID.

        Returns:
            Exit code (0 for success, 1 for malformed input)
        """
        try:
            segments = parse_segments(text)
        except MalformedIdentifierError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if format == "json":
            print(json.dumps([{"type": t, "value": v} for t, v in segments], indent=2))
        else:
            for segment_type, value in segments:
                print(f"{segment_type:<14} {value}")
        return 0

    def resolve(self, text: str) -> int:
        """
        Resolve a unique ID against the importable classes.

        Returns:
            Exit code (0 if resolved, 1 otherwise)
        """
        resolver = TestableResolver(diagnostics=self.diagnostics, markers=self.discovery_config["markers"])
        try:
            testable = resolver.from_unique_id(text, UniqueId.for_engine(self.engine_id))
        except MalformedIdentifierError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if not testable.is_resolved:
            self._print_diagnostics()
            return 1

        element = testable.element
        if isinstance(element, type):
            print(f"{type(testable).__name__}: {qualified_name(element)}")
        else:
            print(f"{type(testable).__name__}: {qualified_name(testable.test_class)}#{element.__name__}")
        return 0

    def discover(self, targets: List[str], format: str = "text") -> int:
        """
        Discover tests for the given targets and print the tree.

        Returns:
            Exit code (0 for success, 1 if any target could not be used)
        """
        selectors = []
        exit_code = 0
        for target in targets:
            try:
                selectors.append(parse_selector(target))
            except (MalformedIdentifierError, UnresolvableElementError) as e:
                print(f"Error: {e}", file=sys.stderr)
                exit_code = 1

        engine = self._discoverer().discover(selectors)

        if format == "json":
            output = engine.to_dict()
            output["diagnostics"] = self.diagnostics.to_dict()
            print(json.dumps(output, indent=2))
        else:
            self._print_tree(engine)
            print(f"\n{len(engine.tests())} test(s) found.")
            self._print_diagnostics()

        return exit_code

    def extensions(self, target: str) -> int:
        """
        Print the ordered extension points in effect for every node of a target.

        The root registry holds the extensions listed under extensions.default
        in the config; each container and method adds its @extend_with
        extensions on top of its parent's registry.

        Returns:
            Exit code (0 for success, 1 on bad target or configuration)
        """
        try:
            selector = parse_selector(target)
            root_registry = create_root_registry(get_default_extensions(self.repo_root))
            engine = self._discoverer().discover([selector])
            self._print_extensions(engine, root_registry)
        except (MalformedIdentifierError, UnresolvableElementError, ExtensionConfigurationException) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        self._print_diagnostics()
        return 0

    def _print_extensions(self, descriptor: TestDescriptor, root: ExtensionPointRegistry, depth: int = 0) -> None:
        registry = extension_registry_for(descriptor, root)
        indent = "  " * depth
        print(f"{indent}{descriptor.display_name}")
        for kind in EXTENSION_POINT_KINDS:
            implementations = registry.all_for(kind)
            if implementations:
                names = ", ".join(type(i).__name__ for i in implementations)
                print(f"{indent}  {kind.__name__}: {names}")

        for child in descriptor.children:
            self._print_extensions(child, root, depth + 1)

    def _print_tree(self, descriptor: TestDescriptor, depth: int = 0) -> None:
        print(f"{'  ' * depth}{descriptor.display_name}  {descriptor.unique_id}")
        for child in descriptor.children:
            self._print_tree(child, depth + 1)

    def _print_diagnostics(self) -> None:
        for diagnostic in self.diagnostics:
            print(str(diagnostic), file=sys.stderr)
