import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, get_type_hints

from tessera_di.domain import (
    AutowireError,
    AutowireOptions,
    AutowireStrategy,
    IResolver,
    Token,
)

if TYPE_CHECKING:
    from tessera_di.application.container import Container

logger = logging.getLogger(__name__)

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


class DependencyResolver(IResolver):
    """Resolves constructor arguments from explicit mappings or type hints.

    Three strategies are supported:
    - RESOLVERS: an ordered list of tokens or callables, one per parameter position.
    - MAP: parameter name to token or callable.
    - TYPE_HINTS: parameter annotations looked up in the container's interface registry.

    Parameters with default values, ``*args`` and ``**kwargs`` are never
    resolved unless a strategy names them explicitly. Parameters given through
    ``with_parameters`` always win.

    Attributes:
        _signatures: Injectable parameters per constructor, computed once.
    """

    def __init__(self) -> None:
        self._signatures: Dict[Callable[..., Any], List[inspect.Parameter]] = {}

    def resolve_arguments(
        self,
        constructor: Callable[..., Any],
        container: "Container",
        options: AutowireOptions,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Resolve all constructor arguments.

        Args:
            constructor: The class or callable to autowire.
            container: The container to resolve dependencies from.
            options: Strategy and its inputs.
            parameters: Explicit keyword values.

        Returns:
            Keyword arguments for the constructor.

        Raises:
            AutowireError: If a required parameter cannot be satisfied in strict mode.

        Example:
            >>> class UserService:
            ...     def __init__(self, repository: IUserRepository, logger: ILogger):
            ...         self.repository = repository
            ...         self.logger = logger
            >>>
            >>> resolver = DependencyResolver()
            >>> kwargs = resolver.resolve_arguments(UserService, container, AutowireOptions())
        """
        strict = container.settings.autowire_strict if options.strict is None else options.strict
        kwargs: Dict[str, Any] = dict(parameters or {})

        if options.by == AutowireStrategy.RESOLVERS:
            plan = self._plan_by_position(constructor, options)
        elif options.by == AutowireStrategy.MAP:
            plan = self._plan_by_name(constructor, options)
        else:
            plan = self._plan_by_type_hints(constructor, container)

        for param, entry, reason in plan:
            if param.name in kwargs:
                continue
            if entry is not None:
                kwargs[param.name] = self._resolve_entry(entry, container)
                continue
            if param.default is not inspect.Parameter.empty:
                continue
            if strict:
                raise AutowireError(constructor, reason)
            # Non-strict mode passes None for parameters nothing can satisfy.
            kwargs[param.name] = None

        return kwargs

    @staticmethod
    def _resolve_entry(entry: Any, container: "Container") -> Any:
        if isinstance(entry, Token):
            return container.resolve(entry)
        return entry(container)

    def _parameters(self, constructor: Callable[..., Any]) -> List[inspect.Parameter]:
        cached = self._signatures.get(constructor)
        if cached is not None:
            return cached

        try:
            signature = inspect.signature(constructor)
        except (TypeError, ValueError) as e:
            raise AutowireError(constructor, f"Signature cannot be inspected: {e}") from e

        parameters = [
            param
            for name, param in signature.parameters.items()
            if name != "self" and param.kind not in _SKIPPED_KINDS
        ]
        self._signatures[constructor] = parameters
        return parameters

    def _plan_by_position(
        self, constructor: Callable[..., Any], options: AutowireOptions
    ) -> List[Tuple[inspect.Parameter, Any, str]]:
        plan = []
        for position, param in enumerate(self._parameters(constructor)):
            entry = options.resolvers[position] if position < len(options.resolvers) else None
            plan.append((param, entry, f"No resolver for parameter '{param.name}' at position {position}."))
        return plan

    def _plan_by_name(
        self, constructor: Callable[..., Any], options: AutowireOptions
    ) -> List[Tuple[inspect.Parameter, Any, str]]:
        return [
            (param, options.map.get(param.name), f"Parameter '{param.name}' not found in autowire map.")
            for param in self._parameters(constructor)
        ]

    def _plan_by_type_hints(
        self, constructor: Callable[..., Any], container: "Container"
    ) -> List[Tuple[inspect.Parameter, Any, str]]:
        hints = self._type_hints(constructor)
        plan = []
        for param in self._parameters(constructor):
            if param.default is not inspect.Parameter.empty:
                plan.append((param, None, ""))
                continue

            hint = hints.get(param.name)
            if hint is None:
                plan.append((param, None, f"Parameter '{param.name}' lacks type hint and has no default value."))
                continue

            token = container.find_interface_token(hint)
            if token is None and not isinstance(hint, str):
                token = container.find_interface_token(getattr(hint, "__qualname__", None))
            plan.append((param, token, f"No interface registered for parameter '{param.name}' of type {hint!r}."))
        return plan

    @staticmethod
    def _type_hints(constructor: Callable[..., Any]) -> Dict[str, Any]:
        target = constructor.__init__ if inspect.isclass(constructor) else constructor
        try:
            return get_type_hints(target)
        except NameError as exc:
            logger.warning("Name error retrieving %r type hints: %s", constructor, exc)
            return {}
        except TypeError:
            return {}
