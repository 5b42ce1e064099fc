"""
Middleware chain.

A chain is a list of direct middleware ``(ctx, next)`` around a terminal
function that calls the handler. Middleware factories ``(handler_context)``
are invoked once when the chain is compiled and must return a direct
middleware.

``next()`` runs the rest of the chain and resolves to whatever it produced;
``next.with_args(*args)`` does the same but replaces the handler's
positional arguments for that invocation.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..faults import DecoratorMisuseFault
from .context import MethodHandlerContext, RequestContext

logger = logging.getLogger("specweave.pipeline")

FACTORY_MARKER = "__specweave_factory__"

DirectMiddleware = Callable[[RequestContext, "Next"], Awaitable[Any]]
Terminal = Callable[[RequestContext, Optional[Sequence[Any]]], Awaitable[Any]]


async def call_maybe_async(func: Callable, *args, **kwargs) -> Any:
    """Call a sync or async callable and await the result if needed."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


def middleware_factory(func: Callable) -> Callable:
    """Mark ``func`` as a middleware factory regardless of its arity."""
    setattr(func, FACTORY_MARKER, True)
    return func


def _positional_arity(func: Callable) -> Optional[int]:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


def is_middleware_factory(middleware: Any) -> bool:
    """
    Classify a middleware entry.

    Raises:
        DecoratorMisuseFault: If the entry is neither kind
    """
    if getattr(middleware, FACTORY_MARKER, False):
        return True
    if not callable(middleware):
        raise DecoratorMisuseFault(
            f"Unknown operation handler middleware type {type(middleware).__name__}. "
            f"Expected a function with 1 argument for a factory, or a function with 2 arguments for middleware."
        )
    arity = _positional_arity(middleware)
    if arity == 1:
        return True
    if arity == 2 or arity is None:
        return False
    raise DecoratorMisuseFault(
        f"Unknown operation handler middleware {middleware!r} taking {arity} arguments. "
        f"Expected a function with 1 argument for a factory, or a function with 2 arguments for middleware."
    )


def compile_middleware(entries: Sequence[Any], context: MethodHandlerContext) -> List[DirectMiddleware]:
    """Resolve factories against ``context``; direct entries pass through."""
    compiled = []
    for entry in entries:
        if is_middleware_factory(entry):
            direct = entry(context)
            if not callable(direct):
                raise DecoratorMisuseFault(
                    f"Middleware factory {entry!r} for operation {context.label} did not return a middleware."
                )
            compiled.append(direct)
        else:
            compiled.append(entry)
    return compiled


class Next:
    """The continuation handed to each middleware."""

    __slots__ = ("_chain", "_index", "_ctx", "_args")

    def __init__(self, chain: "MiddlewareChain", index: int, ctx: RequestContext, args: Optional[Sequence[Any]]):
        self._chain = chain
        self._index = index
        self._ctx = ctx
        self._args = args

    def __call__(self) -> Awaitable[Any]:
        return self._chain._execute(self._index, self._ctx, self._args)

    def with_args(self, *args: Any) -> Awaitable[Any]:
        """Continue the chain with ``args`` as the handler's positional arguments."""
        return self._chain._execute(self._index, self._ctx, list(args))


class MiddlewareChain:
    """
    Immutable, reusable chain of direct middleware around a terminal.

    Example:
        ```python
        chain = MiddlewareChain([timing, auditing], terminal)
        result = await chain.run(ctx)
        ```
    """

    def __init__(self, middleware: Sequence[DirectMiddleware], terminal: Terminal):
        self._middleware = tuple(middleware)
        self._terminal = terminal

    def __len__(self) -> int:
        return len(self._middleware)

    async def run(self, ctx: RequestContext) -> Any:
        return await self._execute(0, ctx, None)

    async def _execute(self, index: int, ctx: RequestContext, args: Optional[Sequence[Any]]) -> Any:
        if index >= len(self._middleware):
            return await self._terminal(ctx, args)
        current = self._middleware[index]
        return await call_maybe_async(current, ctx, Next(self, index + 1, ctx, args))
