"""Registry of transform steps keyed by extension point."""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10


class ExtensionPoint:
    """Names of the extension points the pipeline applies."""

    # Record transforms, applied to every parsed item
    POST_ITEM = "post.item"
    IMAGE_ITEM = "image.item"
    USER_ITEM = "user.item"
    VALIDATOR_ITEM = "validator.item"

    # Query predicates: (predicates, job) -> predicates
    POST_WHERE = "post.where"
    IMAGE_WHERE = "image.where"
    USER_WHERE = "user.where"
    VALIDATOR_WHERE = "validator.where"

    # Image select columns: (columns, job) -> columns
    IMAGE_COLUMNS = "image.columns"

    # Fetched pages: (rows, job) -> rows
    POST_RESULTS = "post.results"
    IMAGE_RESULTS = "image.results"
    USER_RESULTS = "user.results"
    VALIDATOR_RESULTS = "validator.results"


@dataclass(frozen=True)
class TransformStep:
    """A registered function with its ordering information."""
    name: str
    func: Callable[..., Any]
    priority: int = DEFAULT_PRIORITY
    sequence: int = field(default=0, compare=False)


class TransformRegistry:
    """
    Ordered transform steps per extension point.

    Steps run in ascending priority; steps with equal priority run in
    the order they were registered. Each step receives the value returned
    by the previous one.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._steps: Dict[str, List[TransformStep]] = {}
        self._counter = itertools.count()

    def register(
        self,
        extension_point: str,
        func: Callable[..., Any],
        priority: int = DEFAULT_PRIORITY,
        name: Optional[str] = None
    ) -> TransformStep:
        """
        Register a transform step.

        Args:
            extension_point: Name of the extension point
            func: Callable taking the value (plus any context) and returning it
            priority: Lower runs first
            name: Step name, defaults to the function's name

        Returns:
            The registered TransformStep
        """
        step_name = name or getattr(func, "__name__", None) or getattr(
            getattr(func, "func", None), "__name__", repr(func)
        )
        step = TransformStep(
            name=step_name,
            func=func,
            priority=priority,
            sequence=next(self._counter),
        )
        steps = self._steps.setdefault(extension_point, [])
        steps.append(step)
        steps.sort(key=lambda s: (s.priority, s.sequence))
        logger.debug(f"Registered {step_name} on {extension_point} (priority {priority})")
        return step

    def unregister(self, extension_point: str, name: str) -> bool:
        """Remove every step called ``name``; returns True if any was removed."""
        steps = self._steps.get(extension_point, [])
        remaining = [s for s in steps if s.name != name]
        self._steps[extension_point] = remaining
        return len(remaining) != len(steps)

    def steps(self, extension_point: str) -> List[TransformStep]:
        """Steps for an extension point, in execution order."""
        return list(self._steps.get(extension_point, []))

    def has(self, extension_point: str) -> bool:
        return bool(self._steps.get(extension_point))

    def apply(self, extension_point: str, value: Any, *context: Any) -> Any:
        """
        Fold all steps of an extension point over ``value``.

        Args:
            extension_point: Name of the extension point
            value: Initial value
            *context: Extra positional arguments passed to every step

        Returns:
            The value returned by the last step (or ``value`` if none)
        """
        for step in self._steps.get(extension_point, []):
            value = step.func(value, *context)
        return value
