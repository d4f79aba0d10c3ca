"""
Minimal dependency injection container for the Sahayak runtime.

Components are registered by type. Constructor and factory parameters
annotated with a registered type are injected on resolution.
"""

import inspect
from typing import Any, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class Container:
    """
    Type-keyed component registry.

    Lifetimes:
    - instance: a pre-built object, returned as is
    - singleton: built on first resolution, then reused
    - factory: called on every resolution
    """

    def __init__(self):
        self._instances: dict[type, Any] = {}
        self._singletons: dict[type, Callable[..., Any]] = {}
        self._factories: dict[type, Callable[..., Any]] = {}

    def register_instance(self, interface: type[T], instance: T) -> None:
        self._instances[interface] = instance
        logger.debug(f"Registered instance: {interface.__name__}")

    def register_singleton(
        self,
        interface: type[T],
        implementation: Callable[..., T] | None = None,
    ) -> None:
        """
        Register a lazily built singleton.

        Args:
            interface: Type used for lookup
            implementation: Class or factory building it (defaults to interface)
        """
        self._singletons[interface] = implementation or interface
        logger.debug(f"Registered singleton: {interface.__name__}")

    def register_factory(self, interface: type[T], factory: Callable[..., T]) -> None:
        self._factories[interface] = factory
        logger.debug(f"Registered factory: {interface.__name__}")

    def resolve(self, interface: type[T]) -> T:
        """
        Resolve a component.

        Raises:
            ValueError: If the type was never registered
        """
        if interface in self._instances:
            return self._instances[interface]

        if interface in self._factories:
            return self._invoke(self._factories[interface])

        if interface in self._singletons:
            instance = self._invoke(self._singletons[interface])
            self._instances[interface] = instance
            return instance

        raise ValueError(f"No registration found for: {interface.__name__}")

    def has(self, interface: type) -> bool:
        return (
            interface in self._instances
            or interface in self._singletons
            or interface in self._factories
        )

    def _invoke(self, func: Callable[..., T]) -> T:
        kwargs = {}
        for name, param in inspect.signature(func).parameters.items():
            if param.annotation is inspect.Parameter.empty or not isinstance(param.annotation, type):
                continue
            if self.has(param.annotation):
                kwargs[name] = self.resolve(param.annotation)
            elif param.default is inspect.Parameter.empty:
                logger.warning(f"Could not resolve dependency: {name} ({param.annotation.__name__})")
        return func(**kwargs)

    def clear(self) -> None:
        self._instances.clear()
        self._singletons.clear()
        self._factories.clear()

    def get_registrations(self) -> dict[str, list[str]]:
        return {
            "instances": [t.__name__ for t in self._instances],
            "singletons": [t.__name__ for t in self._singletons],
            "factories": [t.__name__ for t in self._factories],
        }
