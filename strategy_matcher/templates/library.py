"""
Strategy Template Library

The library is an immutable, ordered catalog of strategy templates. Order is
the search priority: descending leg count, then lexical name, so that richer
structures consume positions first and results are reproducible across runs
and process restarts.

Adding or removing templates is a configuration-time operation: extended()
and without() return new libraries and never modify an existing one, so a
library can be shared by concurrent searches without locking.

Usage:
    from strategy_matcher.templates.library import TemplateLibrary, templates

    for template in templates():
        print(template.name)

    library = TemplateLibrary.default(exclude=['Naked Call', 'Naked Put'])
"""

import logging
from typing import Iterable, Iterator, Optional, Tuple

from strategy_matcher.templates.definitions import (
    StrategyTemplate,
    TemplateDefinitionError,
    OptionStrategyDefinitions,
)

# Configure module logger
logger = logging.getLogger(__name__)


class TemplateLibrary:
    """
    Immutable, priority-ordered collection of strategy templates.

    Example:
        >>> library = TemplateLibrary.default()
        >>> library.templates()[0].leg_count
        4
        >>> 'Covered Call' in library
        True
    """

    __slots__ = ('_templates', '_by_name')

    def __init__(self, templates: Iterable[StrategyTemplate]) -> None:
        """
        Initialize a library.

        Args:
            templates: Template definitions in any order

        Raises:
            TemplateDefinitionError: If a template is malformed or two
                templates share a name
        """
        by_name = {}
        for template in templates:
            if not isinstance(template, StrategyTemplate):
                raise TemplateDefinitionError(
                    f"expected StrategyTemplate, got {type(template).__name__}"
                )
            template.validate()
            if template.name in by_name:
                raise TemplateDefinitionError(
                    f"duplicate template name: {template.name!r}"
                )
            by_name[template.name] = template

        ordered = tuple(sorted(by_name.values(), key=lambda t: t.priority_key))
        object.__setattr__(self, '_templates', ordered)
        object.__setattr__(self, '_by_name', dict(by_name))

    def __setattr__(self, name, value):
        raise AttributeError("TemplateLibrary is immutable")

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def default(cls, exclude: Iterable[str] = ()) -> 'TemplateLibrary':
        """
        Create the library of canonical option strategies.

        Args:
            exclude: Template names to leave out

        Returns:
            TemplateLibrary over OptionStrategyDefinitions

        Raises:
            KeyError: If an excluded name is not a known definition
        """
        excluded = set(exclude)
        unknown = excluded - set(OptionStrategyDefinitions.names())
        if unknown:
            raise KeyError(f"Unknown template names: {sorted(unknown)}")
        return cls(t for t in OptionStrategyDefinitions.all() if t.name not in excluded)

    def extended(self, extra: Iterable[StrategyTemplate]) -> 'TemplateLibrary':
        """Return a new library with additional templates."""
        return TemplateLibrary(list(self._templates) + list(extra))

    def without(self, names: Iterable[str]) -> 'TemplateLibrary':
        """
        Return a new library without the named templates.

        Raises:
            KeyError: If a name is not in this library
        """
        removed = set(names)
        unknown = removed - set(self._by_name)
        if unknown:
            raise KeyError(f"Unknown template names: {sorted(unknown)}")
        return TemplateLibrary(t for t in self._templates if t.name not in removed)

    # =========================================================================
    # Accessors
    # =========================================================================

    def templates(self) -> Tuple[StrategyTemplate, ...]:
        """Get templates in search priority order."""
        return self._templates

    def names(self) -> Tuple[str, ...]:
        """Get template names in search priority order."""
        return tuple(t.name for t in self._templates)

    def get(self, name: str) -> Optional[StrategyTemplate]:
        return self._by_name.get(name)

    def __getitem__(self, name: str) -> StrategyTemplate:
        return self._by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[StrategyTemplate]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TemplateLibrary):
            return NotImplemented
        return self._templates == other._templates

    def __hash__(self) -> int:
        return hash(self._templates)

    def __repr__(self) -> str:
        return f"TemplateLibrary({len(self._templates)} templates)"


# Built once at import; shared by every search that does not supply its own
DEFAULT_LIBRARY = TemplateLibrary.default()


def templates() -> Tuple[StrategyTemplate, ...]:
    """Get the default catalog in search priority order."""
    return DEFAULT_LIBRARY.templates()
