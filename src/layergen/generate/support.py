"""
Shared support modules for the generated application.

These are re-rendered on every run (they depend only on the package name
and on the routers known to the registry) and give the per-class
artifacts their common runtime: error types, validation rules, the
optimistic state protocol, the dependency container and the API module.
"""

from __future__ import annotations

from textwrap import dedent

from layergen.core.spec import Layer

from . import layout
from .builder import GENERATED_NOTICE
from .generator import GenerationContext


def _header(title: str) -> str:
    return f'"""\n{title}\n\n{GENERATED_NOTICE}\n"""\n\nfrom __future__ import annotations\n'


def domain_errors() -> str:
    return _header("Domain errors.") + dedent('''

        class DomainError(Exception):
            """Base class for domain errors."""


        class ValidationError(DomainError, ValueError):
            """A value violates a declared rule."""

            def __init__(self, field: str, message: str) -> None:
                self.field = field
                self.message = message
                super().__init__(f"{field}: {message}")


        class NotFoundError(DomainError, LookupError):
            """A requested record does not exist."""

            def __init__(self, entity: str, key: object) -> None:
                self.entity = entity
                self.key = key
                super().__init__(f"{entity} {key!r} not found")
    ''')


def domain_validation(package: str) -> str:
    return _header("Validation rules shared by generated entities.") + dedent('''
        from collections.abc import Collection
        from decimal import Decimal
        from typing import Any

        from {package}.domain.errors import ValidationError


        def _is_number(value: Any) -> bool:
            return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


        def require_non_empty(field: str, value: Any) -> None:
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(field, "must be a non-empty string")


        def require_non_negative(field: str, value: Any) -> None:
            if not _is_number(value):
                raise ValidationError(field, "must be a number")
            if value < 0:
                raise ValidationError(field, "must not be negative")


        def require_positive(field: str, value: Any) -> None:
            if not _is_number(value):
                raise ValidationError(field, "must be a number")
            if value <= 0:
                raise ValidationError(field, "must be positive")


        def require_instance(field: str, value: Any, expected: type | tuple[type, ...]) -> None:
            if not isinstance(value, expected) or (isinstance(value, bool) and expected is not bool):
                raise ValidationError(field, f"has the wrong type ({{type(value).__name__}})")


        def require_member(field: str, value: Any, allowed: Collection[Any]) -> None:
            if value not in allowed:
                choices = ", ".join(repr(choice) for choice in allowed)
                raise ValidationError(field, f"must be one of {{choices}}")
    ''').format(package=package)


def application_optimistic() -> str:
    return _header("Keyed state container with optimistic mutations.") + dedent('''
        import copy
        import logging
        from collections.abc import Awaitable, Callable
        from enum import StrEnum
        from typing import Any, Generic, TypeVar

        logger = logging.getLogger(__name__)

        S = TypeVar("S")


        class MutationPhase(StrEnum):
            """Where the last mutation of a key stands."""

            IDLE = "idle"
            PENDING = "pending"
            CONFIRMED = "confirmed"
            ROLLED_BACK = "rolled_back"


        class OptimisticState(Generic[S]):
            """
            Process-local state keyed by an external identifier.

            A mutation runs snapshot -> optimistic apply -> pending, then either
            confirms with the authoritative result or restores the snapshot and
            re-raises. Overlapping mutations on one key are last-write-wins.
            """

            def __init__(self, initial: Callable[[], S]) -> None:
                self._initial = initial
                self._states: dict[str, S] = {}
                self._phases: dict[str, MutationPhase] = {}
                self._listeners: list[Callable[[str, S], None]] = []
                self.current_key: str | None = None

            def get(self, key: str) -> S:
                if key not in self._states:
                    return self._initial()
                return self._states[key]

            @property
            def current(self) -> S:
                if self.current_key is None:
                    return self._initial()
                return self.get(self.current_key)

            def phase(self, key: str) -> MutationPhase:
                return self._phases.get(key, MutationPhase.IDLE)

            def set(self, key: str, value: S) -> None:
                self._states[key] = value
                self.current_key = key
                for listener in list(self._listeners):
                    listener(key, value)

            def subscribe(self, listener: Callable[[str, S], None]) -> Callable[[], None]:
                self._listeners.append(listener)

                def unsubscribe() -> None:
                    if listener in self._listeners:
                        self._listeners.remove(listener)

                return unsubscribe

            async def mutate(
                self,
                key: str,
                apply: Callable[[S], S],
                commit: Callable[[], Awaitable[S | None]],
            ) -> S:
                """
                Apply ``apply`` locally, then confirm with ``commit``.

                A ``None`` result from ``commit`` keeps the optimistic state.
                """
                snapshot = copy.deepcopy(self.get(key))
                self.set(key, apply(copy.deepcopy(snapshot)))
                self._phases[key] = MutationPhase.PENDING
                try:
                    result = await commit()
                except Exception:
                    self.set(key, snapshot)
                    self._phases[key] = MutationPhase.ROLLED_BACK
                    logger.warning("Optimistic update for %s rolled back", key)
                    raise
                if result is not None:
                    self.set(key, result)
                self._phases[key] = MutationPhase.CONFIRMED
                return self.get(key)

            async def refresh(self, key: str, fetch: Callable[[], Awaitable[S]]) -> S:
                """Replace the state of ``key`` with an authoritative fetch."""
                self.set(key, await fetch())
                return self.get(key)


        def merge_item(
            items: list[Any],
            key_attr: str,
            key: Any,
            amount_attr: str,
            amount: Any,
            factory: Callable[..., Any],
        ) -> list[Any]:
            """Add ``amount`` to the item with ``key``, appending a new item if absent."""
            merged: list[Any] = []
            found = False
            for item in items:
                if getattr(item, key_attr) == key:
                    item = copy.copy(item)
                    setattr(item, amount_attr, getattr(item, amount_attr) + amount)
                    found = True
                merged.append(item)
            if not found:
                merged.append(factory(**{key_attr: key, amount_attr: amount}))
            return merged


        def drop_item(items: list[Any], key_attr: str, key: Any) -> list[Any]:
            """Remove the item with ``key``."""
            return [item for item in items if getattr(item, key_attr) != key]


        def put_item(items: list[Any], key_attr: str, item: Any) -> list[Any]:
            """Replace the item sharing ``item``'s key, appending it if absent."""
            key = getattr(item, key_attr)
            updated = [item if getattr(existing, key_attr) == key else existing for existing in items]
            if not any(getattr(existing, key_attr) == key for existing in items):
                updated.append(item)
            return updated
    ''')


def infrastructure_errors() -> str:
    return _header("Errors raised by generated infrastructure adapters.") + dedent('''

        class ServiceError(Exception):
            """An external service call failed."""

            def __init__(self, message: str, status_code: int | None = None) -> None:
                self.message = message
                self.status_code = status_code
                super().__init__(message)


        class BadRequest(ServiceError, ValueError):
            """The service rejected the request (400/422)."""


        class RateLimited(ServiceError):
            """The service is throttling requests (429)."""

            def __init__(
                self,
                message: str,
                status_code: int | None = 429,
                retry_after: float | None = None,
            ) -> None:
                super().__init__(message, status_code)
                self.retry_after = retry_after


        class ServerError(ServiceError):
            """The service failed internally (5xx)."""
    ''')


def infrastructure_http(package: str) -> str:
    return _header("HTTP plumbing shared by generated adapters.") + dedent('''
        import asyncio
        import dataclasses
        import logging
        from datetime import date, datetime, time
        from decimal import Decimal
        from enum import Enum
        from typing import Any
        from uuid import UUID

        import httpx

        from {package}.infrastructure.errors import BadRequest, RateLimited, ServerError, ServiceError

        logger = logging.getLogger(__name__)


        def to_jsonable(value: Any) -> Any:
            """Convert domain values into JSON-compatible data."""
            if dataclasses.is_dataclass(value) and not isinstance(value, type):
                return to_jsonable(dataclasses.asdict(value))
            if hasattr(value, "model_dump"):
                return value.model_dump(mode="json")
            if isinstance(value, dict):
                return {{str(key): to_jsonable(item) for key, item in value.items()}}
            if isinstance(value, (list, tuple, set)):
                return [to_jsonable(item) for item in value]
            if isinstance(value, (datetime, date, time)):
                return value.isoformat()
            if isinstance(value, (Decimal, UUID)):
                return str(value)
            if isinstance(value, Enum):
                return value.value
            if hasattr(value, "__dict__") and not isinstance(value, type):
                return {{key: to_jsonable(item) for key, item in vars(value).items() if not key.startswith("_")}}
            return value


        def error_for(response: httpx.Response) -> ServiceError:
            """Map a failed response to a service error."""
            status = response.status_code
            message = f"{{response.request.method}} {{response.request.url.path}} returned {{status}}"
            if status in (400, 422):
                return BadRequest(message, status)
            if status == 429:
                retry_after = response.headers.get("Retry-After")
                try:
                    delay = float(retry_after) if retry_after is not None else None
                except ValueError:
                    delay = None
                return RateLimited(message, status, retry_after=delay)
            if status >= 500:
                return ServerError(message, status)
            return ServiceError(message, status)


        async def send(
            client: httpx.AsyncClient,
            method: str,
            path: str,
            max_retries: int = 2,
            backoff: float = 0.3,
            **kwargs: Any,
        ) -> Any:
            """
            Send a request, retrying throttling, server errors and transport
            failures with exponential backoff.

            Returns:
                Decoded JSON body, or None for an empty response

            Raises:
                ServiceError: (or a subclass) once retries are exhausted
            """
            error: ServiceError | None = None
            for attempt in range(max_retries + 1):
                try:
                    response = await client.request(method, path, **kwargs)
                except httpx.TimeoutException as exc:
                    error = ServiceError(f"{{method}} {{path}} timed out")
                    error.__cause__ = exc
                except httpx.TransportError as exc:
                    error = ServiceError(f"{{method}} {{path}} failed: {{exc}}")
                    error.__cause__ = exc
                else:
                    if response.is_success:
                        return response.json() if response.content else None
                    error = error_for(response)
                    if not isinstance(error, (RateLimited, ServerError)):
                        raise error
                if attempt < max_retries:
                    delay = backoff * 2**attempt
                    logger.debug("Retrying %s %s in %.2fs: %s", method, path, delay, error)
                    await asyncio.sleep(delay)
            if error is None:
                raise ServiceError(f"{{method}} {{path}} was not sent (max_retries={{max_retries}})")
            raise error
    ''').format(package=package)


def infrastructure_model_base() -> str:
    return _header("Declarative base for generated storage models.") + dedent('''
        from sqlalchemy.orm import declarative_base

        Base = declarative_base()
    ''')


def container_module() -> str:
    return _header("Dependency container, initialized once by the composition root.") + dedent('''
        from collections.abc import Callable
        from typing import Any


        class ProviderError(RuntimeError):
            """No provider is registered for a key."""


        class Container:
            """Explicit registry of instances and factories, looked up by key."""

            def __init__(self) -> None:
                self._instances: dict[Any, Any] = {}
                self._factories: dict[Any, tuple[Callable[[Container], Any], bool]] = {}

            def register(self, key: Any, instance: Any) -> None:
                self._instances[key] = instance

            def register_factory(
                self,
                key: Any,
                factory: Callable[[Container], Any],
                singleton: bool = True,
            ) -> None:
                self._factories[key] = (factory, singleton)

            def resolve(self, key: Any) -> Any:
                if key in self._instances:
                    return self._instances[key]
                if key in self._factories:
                    factory, singleton = self._factories[key]
                    instance = factory(self)
                    if singleton:
                        self._instances[key] = instance
                    return instance
                name = getattr(key, "__name__", str(key))
                raise ProviderError(f"No provider registered for {name}")

            def __contains__(self, key: Any) -> bool:
                return key in self._instances or key in self._factories


        _container: Container | None = None


        def init_container(container: Container | None = None) -> Container:
            """Install the process-wide container (composition root only)."""
            global _container
            _container = container if container is not None else Container()
            return _container


        def get_container() -> Container:
            if _container is None:
                raise ProviderError("Container not initialized; call init_container() first")
            return _container


        def reset_container() -> None:
            global _container
            _container = None
    ''')


def presentation_errors(package: str) -> str:
    return _header("HTTP error mapping for generated routers.") + dedent('''
        import logging

        from fastapi import FastAPI, Request
        from fastapi.responses import JSONResponse

        from {package}.domain.errors import ValidationError

        logger = logging.getLogger(__name__)


        def status_for(exc: Exception) -> int:
            """HTTP status for an error escaping a use case."""
            if isinstance(exc, ValidationError):
                return 422
            if isinstance(exc, ValueError):
                return 400 if getattr(exc, "status_code", None) == 400 else 422
            if isinstance(exc, LookupError):
                return 404
            if isinstance(exc, PermissionError):
                return 403
            return 500


        async def _handle(request: Request, exc: Exception) -> JSONResponse:
            status = status_for(exc)
            if status >= 500:
                logger.exception("Unhandled error on %s", request.url.path)
                return JSONResponse({{"detail": "Internal server error"}}, status_code=500)
            return JSONResponse({{"detail": str(exc)}}, status_code=status)


        def register_exception_handlers(api: FastAPI) -> None:
            for exc_type in (ValueError, LookupError, PermissionError, Exception):
                api.add_exception_handler(exc_type, _handle)
    ''').format(package=package)


def presentation_api(context: GenerationContext) -> str:
    package = context.package
    routers = sorted({layout.module_stem(spec) for spec in context.specs_in(Layer.PRESENTATION_ROUTER)})

    lines = [
        "from fastapi import FastAPI",
        "",
        f"from {package}.presentation.errors import register_exception_handlers",
    ]
    if routers:
        lines.append(f"from {package}.presentation.routers import {', '.join(routers)}")
    lines += [
        "",
        "",
        "def create_api() -> FastAPI:",
        '    """Build the API; route prefixes are declared by each router."""',
        f'    api = FastAPI(title="{package}")',
        "    register_exception_handlers(api)",
    ]
    lines += [f"    api.include_router({name}.router)" for name in routers]
    lines.append("    return api")
    return _header("API composition.") + "\n" + "\n".join(lines) + "\n"


def package_inits(package: str) -> dict[str, str]:
    """``__init__.py`` for the package, each layer directory and the tests tree."""
    files: dict[str, str] = {f"{package}/__init__.py": "", "tests/__init__.py": ""}
    for directory in layout.LAYER_DIRS.values():
        parts = directory.split("/")
        for depth in range(1, len(parts) + 1):
            sub = "/".join(parts[:depth])
            files[f"{package}/{sub}/__init__.py"] = ""
            files[f"tests/{sub}/__init__.py"] = ""
    return files


def support_files(context: GenerationContext) -> dict[str, str]:
    """Every shared support file, keyed by relative path."""
    package = context.package
    files = package_inits(package)
    files.update(
        {
            "conftest.py": '"""Puts the generated package on the test path."""\n',
            f"{package}/domain/errors.py": domain_errors(),
            f"{package}/domain/validation.py": domain_validation(package),
            f"{package}/application/optimistic.py": application_optimistic(),
            f"{package}/infrastructure/errors.py": infrastructure_errors(),
            f"{package}/infrastructure/http.py": infrastructure_http(package),
            f"{package}/infrastructure/models/base.py": infrastructure_model_base(),
            f"{package}/container.py": container_module(),
            f"{package}/presentation/errors.py": presentation_errors(package),
            f"{package}/presentation/api.py": presentation_api(context),
        }
    )
    return files
