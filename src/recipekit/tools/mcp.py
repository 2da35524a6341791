from __future__ import annotations

import asyncio
import functools
import logging
import threading
from typing import (
    Any,
    Awaitable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
)
from urllib.parse import urlparse, urlunparse

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from ..core.Exceptions import ToolDefinitionError, ToolInvocationError
from ..core.Parameters import NO_VAL, DeclaredType, ParamSpec
from .base import Tool

logger = logging.getLogger(__name__)

# ───────────────────────────────────────────────────────────────────────────────
# Public API
# ───────────────────────────────────────────────────────────────────────────────
__all__ = ["McpTool", "McpToolProvider", "list_mcp_tools", "call_mcp_tool_once", "schema_to_parameters"]


def _normalize_mcp_url(url: str) -> str:
    """Point an MCP server URL at ``/mcp`` when its path is empty or root.

    Examples:
        - "http://localhost:8000" -> "http://localhost:8000/mcp"
        - "http://localhost:8000/mcp" -> unchanged
    """
    parts = urlparse(str(url))
    if not parts.path or parts.path == "/":
        parts = parts._replace(path="/mcp")
    return urlunparse(parts)


# ───────────────────────────────────────────────────────────────────────────────
# MCP helper functions (generic, class-independent)
# ───────────────────────────────────────────────────────────────────────────────
T = TypeVar("T")


def _run_coro_sync(coro: Awaitable[T]) -> T:
    """
    Run an async coroutine from sync code, even if we're already inside
    an event loop.

    - If no loop is running in this thread, uses asyncio.run(coro).
    - If a loop *is* running, runs the coroutine on a fresh loop in a
      worker thread and returns its result.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    result_box: List[T] = []
    error_box: List[BaseException] = []

    def runner() -> None:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            result_box.append(loop.run_until_complete(coro))
        except BaseException as exc:  # noqa: BLE001 - re-raised in the caller thread
            error_box.append(exc)
        finally:
            loop.close()

    thread = threading.Thread(target=runner, daemon=True)
    thread.start()
    thread.join()

    if error_box:
        raise error_box[0]
    if not result_box:
        raise RuntimeError("Coroutine completed without result")
    return result_box[0]


def _field(obj: Any, name: str) -> Any:
    value = getattr(obj, name, None)
    if value is None and isinstance(obj, Mapping):
        value = obj.get(name)
    return value


def list_mcp_tools(
    server_url: str,
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    List tools exposed by an MCP server over streamable HTTP.

    Returns a mapping of tool name → metadata dict with ``name``,
    ``description`` and ``input_schema`` (JSON Schema or None).
    """
    server_url = _normalize_mcp_url(server_url)

    async def _do() -> Any:
        headers_dict: Optional[Dict[str, str]] = dict(headers) if headers else None
        async with streamablehttp_client(server_url, headers=headers_dict) as (read_stream, write_stream, _):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                return await session.list_tools()

    tools_resp = _run_coro_sync(_do())
    tools = getattr(tools_resp, "tools", tools_resp) or []

    result: Dict[str, Dict[str, Any]] = {}
    for item in tools:
        name = _field(item, "name")
        if not name:
            continue
        description = _field(item, "description")
        result[str(name)] = {
            "name": str(name),
            "description": str(description) if description is not None else "",
            "input_schema": _field(item, "inputSchema"),
        }
    return result


def call_mcp_tool_once(
    inputs: Mapping[str, Any],
    *,
    server_url: str,
    tool_name: str,
    headers: Optional[Mapping[str, str]] = None,
) -> Any:
    """
    Call a single MCP tool exactly once, synchronously.

    Designed to be partially applied with ``server_url``, ``tool_name`` and
    ``headers`` so the result has the shape ``fn(inputs) -> Any``.
    """

    async def _do() -> Any:
        headers_dict: Optional[Dict[str, str]] = dict(headers) if headers else None
        async with streamablehttp_client(server_url, headers=headers_dict) as (read_stream, write_stream, _):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                return await session.call_tool(tool_name, arguments=dict(inputs))

    try:
        return _run_coro_sync(_do())
    except Exception as exc:  # noqa: BLE001
        raise ToolInvocationError(f"Error calling MCP tool '{tool_name}' at '{server_url}': {exc}") from exc


# ───────────────────────────────────────────────────────────────────────────────
# JSON Schema → ParamSpec
# ───────────────────────────────────────────────────────────────────────────────
_JSON_TYPES: Dict[str, DeclaredType] = {
    "string": DeclaredType.STRING,
    "integer": DeclaredType.LONG,
    "number": DeclaredType.DOUBLE,
    "boolean": DeclaredType.BOOL,
    "array": DeclaredType.LIST,
}


def _json_schema_type(schema: Mapping[str, Any]) -> DeclaredType:
    t = schema.get("type")
    if isinstance(t, (list, tuple)):
        members = [m for m in t if m != "null"]
        t = members[0] if len(members) == 1 else None
    if isinstance(t, str):
        return _JSON_TYPES.get(t, DeclaredType.OTHER)
    return DeclaredType.OTHER


def schema_to_parameters(input_schema: Any) -> List[ParamSpec]:
    """Convert an MCP ``inputSchema`` into keyword-only parameters.

    Required properties carry no default; optional ones default to the
    schema's ``default`` or ``None``. Property order is preserved.
    """
    if not isinstance(input_schema, Mapping):
        return []
    props = input_schema.get("properties") or {}
    if not isinstance(props, Mapping):
        return []
    required = input_schema.get("required") or []
    if not isinstance(required, (list, tuple)):
        required = []

    parameters: List[ParamSpec] = []
    for index, (raw_name, raw_meta) in enumerate(props.items()):
        meta = raw_meta if isinstance(raw_meta, Mapping) else {}
        name = str(raw_name)
        if name in required:
            default = NO_VAL
        else:
            default = meta.get("default")
        parameters.append(
            ParamSpec(name=name, index=index, type=_json_schema_type(meta), kind="KEYWORD_ONLY", default=default)
        )
    return parameters


# ───────────────────────────────────────────────────────────────────────────────
# MCP Tool
# ───────────────────────────────────────────────────────────────────────────────
class McpTool(Tool):
    """Proxy a single remote MCP tool as a catalog Tool.

    Arguments are always sent as one JSON object; ``None`` values for
    optional parameters are left out of the payload.
    """

    def __init__(
        self,
        server_url: str,
        metadata: Mapping[str, Any],
        *,
        headers: Optional[Mapping[str, str]] = None,
        namespace: Optional[str] = None,
        provider: Any = None,
    ) -> None:
        self._server_url = _normalize_mcp_url(server_url)
        self._headers: Dict[str, str] = dict(headers or {})
        tool_name = str(metadata["name"])
        function = functools.partial(
            call_mcp_tool_once,
            server_url=self._server_url,
            tool_name=tool_name,
            headers=self._headers,
        )
        super().__init__(
            function,
            name=tool_name,
            description=(metadata.get("description") or "").strip() or "undescribed MCP tool",
            provider=provider,
            namespace=namespace or "mcp",
            parameters=schema_to_parameters(metadata.get("input_schema")),
        )

    @property
    def server_url(self) -> str:
        return self._server_url

    def execute(self, args: tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        if args:
            raise ToolInvocationError(f"{self.full_name}: MCP tools do not accept positional arguments; got {args!r}")
        optional = {p.name for p in self._parameters if p.has_default}
        payload = {k: v for k, v in kwargs.items() if not (v is None and k in optional)}
        raw = self._function(payload)
        if getattr(raw, "isError", False):
            raise ToolInvocationError(f"{self.full_name}: {_content_text(raw) or 'remote tool reported an error'}")
        return _normalize_mcp_result(raw)

    def to_dict(self) -> Dict[str, Any]:
        # Header values may carry credentials; only the URL is serialized.
        d = super().to_dict()
        d["server_url"] = self._server_url
        return d


def _content_text(raw: Any) -> Optional[str]:
    contents = getattr(raw, "content", raw)
    if isinstance(contents, (list, tuple)):
        texts: List[str] = []
        for item in contents:
            text = getattr(item, "text", None)
            if isinstance(text, str):
                texts.append(text)
            elif isinstance(item, str):
                texts.append(item)
        if texts:
            return "\n".join(texts)
    return None


def _normalize_mcp_result(raw: Any) -> Any:
    # Prefer structured content; unwrap FastMCP's {"result": ...} envelope.
    structured = getattr(raw, "structuredContent", None)
    if isinstance(raw, Mapping) and "structuredContent" in raw:
        structured = raw["structuredContent"]
    if structured not in (None, [], {}):
        if isinstance(structured, Mapping) and len(structured) == 1 and "result" in structured:
            return structured["result"]
        return structured

    if isinstance(raw, Mapping):
        return dict(raw)

    text = _content_text(raw)
    if text is not None:
        return text
    return raw


# ───────────────────────────────────────────────────────────────────────────────
# Provider
# ───────────────────────────────────────────────────────────────────────────────
class McpToolProvider:
    """Contributes every tool of one MCP server to a catalog.

    Discovery happens when :meth:`provide_tools` is called, once per call.
    """

    def __init__(
        self,
        server_url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        namespace: Optional[str] = None,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
    ) -> None:
        self.server_url = _normalize_mcp_url(server_url)
        self.headers: Dict[str, str] = dict(headers or {})
        self.namespace = namespace or "mcp"
        self.include = list(include) if include else None
        self.exclude = list(exclude) if exclude else None

    def provide_tools(self) -> List[Tool]:
        try:
            discovered = list_mcp_tools(self.server_url, headers=self.headers)
        except Exception as exc:  # noqa: BLE001
            raise ToolDefinitionError(f"Failed to list MCP tools at '{self.server_url}': {exc}") from exc

        names = list(discovered)
        if self.include:
            names = [n for n in names if n in set(self.include)]
        if self.exclude:
            names = [n for n in names if n not in set(self.exclude)]
        logger.info("MCP server %s contributes %d tool(s)", self.server_url, len(names))
        return [
            McpTool(self.server_url, discovered[n], headers=self.headers, namespace=self.namespace, provider=self)
            for n in names
        ]

    def __repr__(self) -> str:
        return f"McpToolProvider({self.server_url!r})"
