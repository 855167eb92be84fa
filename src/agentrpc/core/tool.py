from __future__ import annotations
import inspect
from typing import Any, Callable
from pydantic import ValidationError as PydanticValidationError

from agentrpc.core.errors import InvalidHandler
from agentrpc.core.types import ToolInfo, ToolMetadata


class Tool:
    """A registered method: handler plus its published metadata.

    Handlers take the request's params sequence as their single positional
    argument and return the result (plain value or awaitable).  Raising
    signals a handler failure.
    """

    def __init__(
        self,
        fn: Callable,
        method: str | None = None,
        metadata: ToolMetadata | dict | None = None,
    ):
        if not callable(fn):
            raise InvalidHandler("Tool handler must be a function")
        self.fn = fn
        self.method = method if method is not None else getattr(fn, "__name__", "")
        if not self.method:
            raise InvalidHandler("Tool needs a method name")
        self._check_arity()
        if isinstance(metadata, dict):
            try:
                metadata = ToolMetadata.model_validate(metadata)
            except PydanticValidationError as e:
                first = e.errors()[0]
                where = ".".join(str(p) for p in first.get("loc", ()))
                raise InvalidHandler(f"Invalid metadata for {self.method}: {where}: {first.get('msg')}") from None
        self.metadata = _fill_defaults(metadata or ToolMetadata(), self.method)

    def _check_arity(self) -> None:
        try:
            sig = inspect.signature(self.fn)
        except (TypeError, ValueError):
            return  # builtins without introspectable signatures
        try:
            sig.bind([])
        except TypeError:
            raise InvalidHandler(
                f"Tool handler for {self.method} must accept the params list as one positional argument"
            ) from None

    @property
    def info(self) -> ToolInfo:
        return ToolInfo(method=self.method, **self.metadata.model_dump())

    async def invoke(self, params: Any) -> Any:
        result = self.fn(params)
        if inspect.isawaitable(result):
            result = await result
        return result


def _fill_defaults(meta: ToolMetadata, method: str) -> ToolMetadata:
    return ToolMetadata(
        description=meta.description or "",
        price_in_tnk=str(meta.price_in_tnk or "0"),
        category=meta.category or "general",
        service_id=meta.service_id or method,
    )


def tool(
    method: str | None = None,
    description: str = "",
    price_in_tnk: str = "0",
    category: str = "general",
    service_id: str = "",
):
    def decorator(fn: Callable) -> Tool:
        return Tool(
            fn=fn,
            method=method,
            metadata=ToolMetadata(
                description=description or (fn.__doc__ or "").strip(),
                price_in_tnk=price_in_tnk,
                category=category,
                service_id=service_id,
            ),
        )
    return decorator
