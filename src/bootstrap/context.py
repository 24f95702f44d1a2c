"""
Application Context
===================

The set of constructed, wired components available while the process runs.

Components are registered explicitly by name on a ``ContextBuilder`` and
built in registration order. Building is all-or-nothing: when a factory
fails, everything already built is closed again in reverse order and the
failure surfaces as a ``ComponentWiringException``.

At most one context is live per process. The slot is claimed when a build
starts, handed to the resulting context, and released when that context
is closed (or when the build fails).
"""

import inspect
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from src.config import Settings
from src.core import ComponentWiringException, LifecycleException
from src.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


ComponentFactory = Callable[["ContextBuilder"], Union[Any, Awaitable[Any]]]
ComponentCloser = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class ComponentRegistration:
    """Declarative registration of one named component."""

    name: str
    factory: ComponentFactory
    close: Optional[ComponentCloser] = None


class _ContextSlot:
    """Process-wide marker of the live context."""

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[object] = None

    @property
    def occupied(self) -> bool:
        return self._owner is not None

    def acquire(self, owner: object) -> None:
        with self._lock:
            if self._owner is not None and self._owner is not owner:
                raise LifecycleException(
                    "An application context is already active in this process",
                    {"active": type(self._owner).__name__}
                )
            self._owner = owner

    def transfer(self, current: object, new_owner: object) -> None:
        with self._lock:
            if self._owner is not current:
                raise LifecycleException("Application context slot is not held by the caller")
            self._owner = new_owner

    def release(self, owner: object) -> None:
        with self._lock:
            if self._owner is owner:
                self._owner = None


_slot = _ContextSlot()


def has_active_context() -> bool:
    """True while a context is being built or is live in this process."""
    return _slot.occupied


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _close_components(components: Sequence[Tuple[ComponentRegistration, Any]]) -> None:
    """Close components in reverse order, continuing past individual failures."""
    for registration, component in reversed(components):
        if registration.close is None:
            continue
        try:
            await _maybe_await(registration.close(component))
            logger.info("Component closed", extra={"component": registration.name})
        except Exception as e:
            logger.error(
                "Component failed to close",
                extra={
                    "component": registration.name,
                    "error_type": type(e).__name__,
                    "error": str(e)
                }
            )


class ApplicationContext:
    """
    Read-only registry of the components built for this process.

    Created by ``ContextBuilder.build()``; components are looked up by
    name. ``close()`` releases them in reverse construction order exactly
    once.
    """

    def __init__(
        self,
        settings: Settings,
        args: Tuple[str, ...],
        components: Sequence[Tuple[ComponentRegistration, Any]]
    ):
        self._settings = settings
        self._args = args
        self._built = tuple(components)
        self._components: Mapping[str, Any] = MappingProxyType(
            {registration.name: component for registration, component in self._built}
        )
        self._closed = False

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def args(self) -> Tuple[str, ...]:
        return self._args

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._components)

    @property
    def components(self) -> Mapping[str, Any]:
        return self._components

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get(self, name: str) -> Any:
        """
        Get a component by name.

        Raises:
            KeyError: If no component with that name was registered
        """
        try:
            return self._components[name]
        except KeyError:
            raise KeyError(f"No component named '{name}' in application context") from None

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._components

    async def close(self) -> None:
        """Release every component and give up the process slot. Idempotent."""
        if self._closed:
            return
        self._closed = True

        logger.info("Closing application context", extra={"components": list(self.names)})
        try:
            await _close_components(self._built)
        finally:
            _slot.release(self)


class ContextBuilder:
    """
    Collects component registrations and builds the application context.

    Factories receive the builder itself and may call ``get()`` for
    components registered (and therefore built) before them.
    """

    def __init__(self, settings: Settings, args: Sequence[str] = ()):
        self.settings = settings
        self.args: Tuple[str, ...] = tuple(args)
        self._registrations: Dict[str, ComponentRegistration] = {}
        self._built: Dict[str, Any] = {}
        self._consumed = False

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._registrations)

    def register(
        self,
        name: str,
        factory: ComponentFactory,
        close: Optional[ComponentCloser] = None
    ) -> "ContextBuilder":
        """
        Register a component.

        Args:
            name: Unique component name
            factory: Callable (sync or async) building the component
            close: Optional callable (sync or async) releasing it

        Returns:
            ContextBuilder: self, for chaining
        """
        if self._consumed:
            raise LifecycleException("Cannot register components after build()")
        if name in self._registrations:
            raise ComponentWiringException(name, "component already registered")

        self._registrations[name] = ComponentRegistration(name=name, factory=factory, close=close)
        return self

    def get(self, name: str) -> Any:
        """Resolve an already-built component while building."""
        if name not in self._built:
            reason = "not built yet" if name in self._registrations else "not registered"
            raise ComponentWiringException(name, f"component {reason}")
        return self._built[name]

    async def build(self) -> ApplicationContext:
        """
        Build every registered component in order.

        Returns:
            ApplicationContext: The live context, owning the process slot

        Raises:
            LifecycleException: If another context is active or build() ran before
            ComponentWiringException: If any factory fails
        """
        if self._consumed:
            raise LifecycleException("ContextBuilder.build() can only be called once")
        self._consumed = True

        _slot.acquire(self)

        built: List[Tuple[ComponentRegistration, Any]] = []
        try:
            for registration in self._registrations.values():
                try:
                    with log_latency(logger, "component_build", component=registration.name):
                        component = await _maybe_await(registration.factory(self))
                except BaseException as e:
                    logger.error(
                        "Component wiring failed",
                        extra={
                            "component": registration.name,
                            "error_type": type(e).__name__,
                            "error": str(e)
                        }
                    )
                    await _close_components(built)
                    # Cancellation and interpreter exits propagate unchanged
                    if not isinstance(e, Exception):
                        raise
                    if isinstance(e, ComponentWiringException) and e.component == registration.name:
                        raise
                    raise ComponentWiringException(
                        registration.name,
                        str(e) or type(e).__name__,
                        {"component": registration.name, "error_type": type(e).__name__}
                    ) from e

                self._built[registration.name] = component
                built.append((registration, component))
        except BaseException:
            _slot.release(self)
            raise

        context = ApplicationContext(self.settings, self.args, built)
        _slot.transfer(self, context)
        return context
