"""
APMCore HTTP Integration

Creates a child span for every outgoing httpx request made while a
transaction is active. Spans are managed by a wrapping transport, so a
request that fails before a response arrives still finishes its span.
The adapter reaches the active transaction through an accessor supplied by
the host application and talks to the tracing core only through
`start_child`, `set_http_status`, `finish` and the span description.

Usage:
    integration = HttpIntegration(get_transaction=hub.get_transaction)
    client = httpx.Client(transport=integration.transport())
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog

from apmcore.tracing.span import Span
from apmcore.tracing.transaction import Transaction

logger = structlog.get_logger(__name__)

SPAN_EXTENSION_KEY = "apmcore.span"
REQUEST_OP = "request"

RequestArgs = Union[str, Mapping[str, Any]]


def strip_url_query_and_fragment(url: str) -> str:
    """Drop the query string and fragment from a URL."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def extract_url(request_args: RequestArgs) -> str:
    """
    Assemble the URL used in span descriptions.

    Accepts a URL string or a mapping of its parts (`protocol`, `hostname` or
    `host`, `port`, `path`). Standard ports 80 and 443 are left out.
    """
    if isinstance(request_args, str):
        return strip_url_query_and_fragment(request_args)

    protocol = request_args.get("protocol") or ""
    hostname = request_args.get("hostname") or request_args.get("host") or ""
    port = request_args.get("port")
    port_part = "" if not port or int(port) in (80, 443) else f":{port}"
    path = request_args.get("path")
    path = strip_url_query_and_fragment(path) if path else "/"

    # internal routes end up with too many slashes
    return f"{protocol}//{hostname}{port_part}{path}".replace("///", "/")


def describe_request(method: Optional[str], url: str) -> str:
    return f"{method or 'GET'} {url}"


def clean_description(
    request_options: RequestArgs,
    response: Any,
    span: Span,
) -> None:
    """
    Fill in a missing protocol from response metadata.

    Only applies when the request options carry a host but no protocol; the
    protocol is looked up on `response.agent.protocol`. Any lookup failure
    leaves the span description unchanged.
    """
    if isinstance(request_options, str):
        return
    if "protocol" in request_options or not request_options.get("host"):
        return

    try:
        protocol = response.agent.protocol
        options = dict(request_options, protocol=protocol)
        span.description = describe_request(options.get("method"), extract_url(options))
    except (AttributeError, KeyError, TypeError, ValueError):
        logger.debug("Could not resolve request protocol from response", span_id=span.span_id)


class SpanDecisionCache:
    """Caches the span-filter predicate's decision per URL."""

    def __init__(self, should_create_span: Optional[Callable[[str], bool]] = None):
        self._should_create_span = should_create_span
        self._decisions: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def __call__(self, url: str) -> bool:
        with self._lock:
            if url in self._decisions:
                return self._decisions[url]

        if self._should_create_span is None:
            decision = True
        else:
            decision = bool(self._should_create_span(url))

        with self._lock:
            self._decisions[url] = decision
        return decision


class HttpIntegration:
    """
    httpx instrumentation.

    Args:
        get_transaction: Accessor returning the active transaction, if any
        should_create_span: Optional URL filter; decisions are cached per URL
        tracing: Record outgoing requests as spans
        ignore_hosts: Hosts never spanned (e.g. the event ingestion host)
        propagate: Inject the traceparent header into outgoing requests
    """

    def __init__(
        self,
        get_transaction: Callable[[], Optional[Transaction]],
        should_create_span: Optional[Callable[[str], bool]] = None,
        tracing: bool = True,
        ignore_hosts: Iterable[str] = (),
        propagate: bool = True,
        header_name: str = "traceparent",
    ):
        self.get_transaction = get_transaction
        self.should_start_span = SpanDecisionCache(should_create_span)
        self.tracing = tracing
        self.ignore_hosts = frozenset(ignore_hosts)
        self.propagate = propagate
        self.header_name = header_name

    def transport(self, transport: Optional[httpx.BaseTransport] = None) -> "TracingTransport":
        """Transport for a synchronous `httpx.Client`."""
        return TracingTransport(self, transport)

    def async_transport(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AsyncTracingTransport":
        """Transport for an `httpx.AsyncClient`."""
        return AsyncTracingTransport(self, transport)

    def on_request(self, request: httpx.Request) -> Optional[Span]:
        """Start a span for an outgoing request."""
        if not self.tracing or request.url.host in self.ignore_hosts:
            return None

        transaction = self.get_transaction()
        if transaction is None:
            return None

        url = extract_url(str(request.url))
        if not self.should_start_span(url):
            return None

        span = transaction.start_child(
            op=REQUEST_OP,
            description=describe_request(request.method, url),
        )
        request.extensions[SPAN_EXTENSION_KEY] = span

        if self.propagate:
            request.headers[self.header_name] = span.to_traceparent()

        return span

    def on_response(self, request: httpx.Request, response: httpx.Response) -> None:
        """Record the response status and finish the request span."""
        span = request.extensions.pop(SPAN_EXTENSION_KEY, None)
        if span is None:
            return

        span.set_http_status(response.status_code)
        span.finish()

    def record_error(self, request: httpx.Request) -> None:
        """Finish the request span of a failed request as an internal error."""
        span = request.extensions.pop(SPAN_EXTENSION_KEY, None)
        if span is None:
            return

        span.set_http_status(500)
        span.finish()


class TracingTransport(httpx.BaseTransport):
    """
    Wraps a transport so every request sent through it is spanned.

    A request that fails in the wrapped transport finishes its span as an
    internal error before the exception propagates.
    """

    def __init__(
        self,
        integration: HttpIntegration,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.integration = integration
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.integration.on_request(request)
        try:
            response = self._transport.handle_request(request)
        except Exception:
            self.integration.record_error(request)
            raise

        self.integration.on_response(request, response)
        return response

    def close(self) -> None:
        self._transport.close()


class AsyncTracingTransport(httpx.AsyncBaseTransport):
    """Async counterpart of `TracingTransport`."""

    def __init__(
        self,
        integration: HttpIntegration,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.integration = integration
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.integration.on_request(request)
        try:
            response = await self._transport.handle_async_request(request)
        except Exception:
            self.integration.record_error(request)
            raise

        self.integration.on_response(request, response)
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()
