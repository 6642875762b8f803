"""Interception layer: attach hooks to named operations on a target.

Each (target, operation) pair is wrapped once. The wrapper builds an
InvocationContext per call, runs before-hooks, calls the original, runs
after- or error-hooks and finally settles any completion continuations a
probe registered on the context. Hooks never raise into the caller: their
exceptions are reported to the diagnostic channel.
"""

import asyncio
import concurrent.futures
import functools
import inspect
import itertools
from collections.abc import Callable, Sequence
from typing import Any

from probekit.core.errors import HookError, InstrumentationError
from probekit.core.models import (
    CompletionHook,
    Failure,
    InterceptionPoint,
    InvocationContext,
    Outcome,
    Success,
)
from probekit.core.ports import DiagnosticPort

_POINT_ATTR = "__probekit_point__"


def has_error(args: Sequence[Any]) -> bool:
    """Return True if a callback argument list signals failure.

    Follows the error-first convention: a truthy first argument is the error.
    """
    return bool(args) and bool(args[0])


def error_message(error: Any) -> str:
    """Human-readable text for an error object of any shape."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return repr(error)


def get_error_message(args: Sequence[Any]) -> str | None:
    """Extract the error message from a callback argument list, if any."""
    if not has_error(args):
        return None
    return error_message(args[0])


def outcome_from_callback(args: Sequence[Any]) -> Outcome:
    """Convert error-first callback arguments into an Outcome."""
    if has_error(args):
        return Failure(error=args[0], message=error_message(args[0]))
    rest = tuple(args[1:])
    return Success(value=rest[0] if len(rest) == 1 else rest or None)


def outcome_from_exception(exc: BaseException) -> Failure:
    return Failure(error=exc, message=error_message(exc))


def _outcome_of_future(
    future: "asyncio.Future[Any] | concurrent.futures.Future[Any]",
) -> Outcome:
    if future.cancelled():
        return outcome_from_exception(asyncio.CancelledError())
    exc = future.exception()
    if exc is not None:
        return outcome_from_exception(exc)
    return Success(value=future.result())


async def _settling(coro: Any, settle: Callable[[Outcome], None]) -> Any:
    try:
        value = await coro
    except BaseException as exc:
        settle(outcome_from_exception(exc))
        raise
    settle(Success(value=value))
    return value


class _SettlingAwaitable:
    """Proxy that settles a context once the wrapped awaitable resolves.

    Supports both ``await`` and ``async with`` on the wrapped object and
    delegates every other attribute to it. Coroutines are never proxied:
    they get a real coroutine from ``_settling`` so callers can still
    schedule them as tasks.
    """

    __slots__ = ("_wrapped", "_settle")

    def __init__(self, wrapped: Any, settle: Callable[[Outcome], None]) -> None:
        self._wrapped = wrapped
        self._settle = settle

    def __await__(self) -> Any:
        return _settling(self._wrapped, self._settle).__await__()

    async def __aenter__(self) -> Any:
        try:
            value = await self._wrapped.__aenter__()
        except BaseException as exc:
            self._settle(outcome_from_exception(exc))
            raise
        self._settle(Success(value=value))
        return value

    async def __aexit__(self, *exc_info: Any) -> Any:
        return await self._wrapped.__aexit__(*exc_info)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._wrapped, name)


class Interceptor:
    """Attaches before/after/error hooks and completion continuations.

    Example:
        ```python
        interceptor = Interceptor(diagnostics)

        def before(target, ctx):
            ctx.timer = engine.start_timer("Redis", "get")
            interceptor.on_complete(ctx, on_done)

        interceptor.attach_before(client, "get", before)
        ```
    """

    def __init__(self, diagnostics: DiagnosticPort) -> None:
        self._diagnostics = diagnostics
        self._tokens = itertools.count(1)
        self._points: list[InterceptionPoint] = []

    # Attaching

    def attach_before(
        self, target: Any, operation: str, hook: Callable[[Any, InvocationContext], Any]
    ) -> bool:
        """Run ``hook(target, ctx)`` before every call of ``operation``.

        Returns:
            False (and does nothing) if the operation is missing, not
            callable, or cannot be replaced on the target.
        """
        return self._attach(target, operation, "before", hook)

    def attach_after(
        self,
        target: Any,
        operation: str,
        hook: Callable[[Any, InvocationContext, Any], Any],
    ) -> bool:
        """Run ``hook(target, ctx, result)`` after ``operation`` returns."""
        return self._attach(target, operation, "after", hook)

    def attach_error(
        self,
        target: Any,
        operation: str,
        hook: Callable[[Any, InvocationContext, BaseException], Any],
    ) -> bool:
        """Run ``hook(target, ctx, exc)`` when ``operation`` raises."""
        return self._attach(target, operation, "error", hook)

    def _attach(
        self, target: Any, operation: str, phase: str, hook: Callable[..., Any]
    ) -> bool:
        point = self._point(target, operation)
        if point is None:
            return False
        hooks: list[Callable[..., Any]] = getattr(point, phase)
        if hook not in hooks:
            hooks.append(hook)
        return True

    def _point(self, target: Any, operation: str) -> InterceptionPoint | None:
        current = getattr(target, operation, None)
        if current is None or not callable(current):
            return None

        point = getattr(current, _POINT_ATTR, None)
        if isinstance(point, InterceptionPoint) and point.target is target:
            return point

        point = InterceptionPoint(target=target, operation=operation, original=current)

        @functools.wraps(current)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return self._invoke(point, args, kwargs)

        setattr(wrapper, _POINT_ATTR, point)
        try:
            setattr(target, operation, wrapper)
        except (AttributeError, TypeError) as exc:
            error = InstrumentationError(
                f"cannot replace {operation!r} on {type(target).__name__}", operation
            )
            error.__cause__ = exc
            self._diagnostics.report(error)
            return None
        self._points.append(point)
        return point

    def original(self, target: Any, operation: str) -> Any:
        """Return the unwrapped callable for ``operation`` on ``target``."""
        current = getattr(target, operation, None)
        point = getattr(current, _POINT_ATTR, None)
        while isinstance(point, InterceptionPoint) and point.target is target:
            current = point.original
            point = getattr(current, _POINT_ATTR, None)
        return current

    def detach(self, target: Any, operation: str) -> bool:
        """Restore the original operation on ``target``."""
        current = getattr(target, operation, None)
        point = getattr(current, _POINT_ATTR, None)
        if not isinstance(point, InterceptionPoint) or point.target is not target:
            return False
        shadows_method = (
            not isinstance(target, type)
            and inspect.ismethod(point.original)
            and point.original.__self__ is target
        )
        if shadows_method:
            # The wrapper is an instance attribute hiding the class method.
            delattr(target, operation)
        else:
            setattr(target, operation, point.original)
        self._points = [p for p in self._points if p is not point]
        return True

    def detach_all(self) -> None:
        """Restore every operation wrapped by this interceptor."""
        for point in reversed(list(self._points)):
            self.detach(point.target, point.operation)

    # Completion

    def mark_async_completion(
        self, ctx: InvocationContext, index_from_end: int, hook: CompletionHook
    ) -> bool:
        """Settle ``ctx`` when the callback argument is invoked.

        The callback at ``ctx.args[index_from_end]`` (negative index, -1 is
        the last argument) is replaced by a wrapper that calls it first and
        then settles the context. Only the first invocation settles.

        Returns:
            False if there is no callable at that position.
        """
        if index_from_end >= 0:
            raise ValueError("index_from_end must be negative")
        try:
            callback = ctx.args[index_from_end]
        except IndexError:
            return False
        if not callable(callback):
            return False

        @functools.wraps(callback)
        def completion(*cb_args: Any, **cb_kwargs: Any) -> Any:
            try:
                return callback(*cb_args, **cb_kwargs)
            finally:
                self._settle(ctx, outcome_from_callback(cb_args))

        ctx.args[index_from_end] = completion
        ctx.completions.append(hook)
        ctx.awaiting_callback = True
        return True

    def on_complete(self, ctx: InvocationContext, hook: CompletionHook) -> None:
        """Settle ``ctx`` when the call's result completes.

        Plain return values settle immediately, futures through a done
        callback. Coroutines come back as coroutines that settle once
        awaited; other awaitables are proxied.
        """
        ctx.completions.append(hook)

    def _compose(self, ctx: InvocationContext, result: Any) -> Any:
        if not ctx.completions or ctx.awaiting_callback or ctx.consumed:
            return result
        if isinstance(result, (asyncio.Future, concurrent.futures.Future)):
            result.add_done_callback(
                lambda future: self._settle(ctx, _outcome_of_future(future))
            )
            return result
        settle = functools.partial(self._settle, ctx)
        if inspect.iscoroutine(result):
            return _settling(result, settle)
        if inspect.isawaitable(result):
            return _SettlingAwaitable(result, settle)
        self._settle(ctx, Success(value=result))
        return result

    def _settle(self, ctx: InvocationContext, outcome: Outcome) -> None:
        if not ctx.consume():
            return
        for hook in tuple(ctx.completions):
            self._run(hook, ctx, "completion", ctx.target, ctx, outcome)

    # Invocation

    def _invoke(
        self, point: InterceptionPoint, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        ctx = InvocationContext(
            target=point.target,
            operation=point.operation,
            args=list(args),
            kwargs=dict(kwargs),
            token=next(self._tokens),
        )
        for hook in tuple(point.before):
            self._run(hook, ctx, "before", point.target, ctx)

        try:
            result = point.original(*ctx.args, **ctx.kwargs)
        except BaseException as exc:
            for hook in tuple(point.error):
                self._run(hook, ctx, "error", point.target, ctx, exc)
            self._settle(ctx, outcome_from_exception(exc))
            raise

        for hook in tuple(point.after):
            self._run(hook, ctx, "after", point.target, ctx, result)
        return self._compose(ctx, result)

    def _run(
        self, hook: Callable[..., Any], ctx: InvocationContext, phase: str, *args: Any
    ) -> None:
        try:
            hook(*args)
        except Exception as exc:
            error = HookError(ctx.operation, phase)
            error.__cause__ = exc
            self._diagnostics.report(error)
