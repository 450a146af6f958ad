"""Outbound request injection.

Generation requests get the active character's stat summary appended exactly
once. The block starts with ``STATS_MARKER`` on its own line; a body that
already contains the marker is never touched again, so retried requests do
not pile up duplicate blocks.

Injection is best-effort: anything unexpected forwards the original request
unchanged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar, Union

from .errors import ParseFailure
from .types import InjectionResult, OutboundRequest, Preferences, StatRecord
from .utils import format_stat_value

logger = logging.getLogger(__name__)

STATS_MARKER = "<!--STATS-->"

_GENERATION_HINTS = ("generate", "chat", "completion")

T = TypeVar("T")


def should_intercept(method: str, url: str) -> bool:
    """Decide whether a request is a generation request.

    Args:
        method: HTTP method
        url: Request URL or path

    Returns:
        True for POSTs to ``/api/`` generate/chat/completion endpoints that are
        not settings endpoints
    """
    url = str(url or "")
    return (
        (method or "GET").upper() == "POST"
        and "/api/" in url
        and any(hint in url for hint in _GENERATION_HINTS)
        and "settings" not in url
    )


def build_stats_text(records: Iterable[StatRecord]) -> Optional[str]:
    """Build the compact summary sent to the model.

    Returns:
        ``"[Character Stats: Height: 6.00 ft, Mood: happy]"``, or None when
        there are no records
    """
    parts = [f"{rec.name}: {format_stat_value(rec.value, rec.unit)}" for rec in records]
    if not parts:
        return None
    return "[Character Stats: " + ", ".join(parts) + "]"


def build_stats_block(stats_text: str) -> str:
    """Prefix the summary with the marker line."""
    return f"{STATS_MARKER}\n{stats_text}"


def parse_body(body: Union[str, bytes]) -> Any:
    """Parse a request body as JSON.

    Raises:
        ParseFailure: If the body is not valid JSON text
    """
    try:
        if isinstance(body, (bytes, bytearray)):
            body = body.decode("utf-8")
        return json.loads(body)
    except (UnicodeDecodeError, ValueError) as e:
        raise ParseFailure(str(e)) from e


def _has_marker(payload: Any) -> bool:
    return STATS_MARKER in json.dumps(payload, ensure_ascii=False)


def inject_into_payload(payload: Dict[str, Any], stats_text: str,
                        role: str = "system") -> Optional[str]:
    """Merge the stats block into a parsed payload in place.

    Args:
        payload: Parsed request body
        stats_text: Summary from ``build_stats_text``
        role: Role of the appended chat message

    Returns:
        "messages" or "prompt" when the payload was changed, None when it
        already carries the marker anywhere (content parts, prompt, any
        other field) or has neither field
    """
    if _has_marker(payload):
        return None
    block = build_stats_block(stats_text)

    messages = payload.get("messages")
    if isinstance(messages, list):
        messages.append({"role": role, "content": block})
        return "messages"

    prompt = payload.get("prompt")
    if isinstance(prompt, str):
        payload["prompt"] = prompt + "\n\n" + block
        return "prompt"

    return None


def _encode_like(original: Union[str, bytes], text: str) -> Union[str, bytes]:
    if isinstance(original, (bytes, bytearray)):
        return text.encode("utf-8")
    return text


class InjectionPipeline:
    """Interceptor that adds the stat summary to generation requests.

    Args:
        preferences: Callable returning the current Preferences
        records: Callable returning a snapshot of the active scope's records

    Example:
        >>> pipeline = InjectionPipeline(lambda: prefs, lambda: store.snapshot(scope))
        >>> send = pipeline.wrap(transport.send)
        >>> send(OutboundRequest("POST", "/api/chat/completions", body))
    """

    def __init__(self, preferences: Callable[[], Preferences],
                 records: Callable[[], Iterable[StatRecord]]):
        self._preferences = preferences
        self._records = records

    def summary(self) -> Optional[str]:
        """The summary text for the active scope, or None if it is empty."""
        return build_stats_text(self._records())

    def process(self, request: OutboundRequest) -> InjectionResult:
        """Return the request to forward, with stats injected when applicable.

        The input request is never mutated. Raises nothing: any error yields
        the original request.
        """
        try:
            return self._process(request)
        except Exception as e:
            logger.error(f"Stats injection failed, forwarding original request: {e}")
            return InjectionResult(request=request, intercepted=True, reason="error")

    def _process(self, request: OutboundRequest) -> InjectionResult:
        if not should_intercept(request.method, request.url):
            return InjectionResult(request=request, reason="not a generation request")

        body = request.body
        if not body or not isinstance(body, (str, bytes, bytearray)):
            return InjectionResult(request=request, intercepted=True, reason="no body")

        try:
            payload = parse_body(body)
        except ParseFailure as e:
            logger.debug(f"Body is not JSON, passing through: {e}")
            return InjectionResult(request=request, intercepted=True, reason="unparseable body")

        if not isinstance(payload, dict):
            return InjectionResult(request=request, intercepted=True, reason="unsupported payload")

        prefs = self._preferences()
        if not (prefs.enabled and prefs.auto_inject):
            return InjectionResult(request=request, intercepted=True, reason="disabled")

        stats_text = self.summary()
        if not stats_text:
            return InjectionResult(request=request, intercepted=True, reason="no stats")

        target = inject_into_payload(payload, stats_text, prefs.effective_role)
        if target is None:
            reason = "already injected" if _has_marker(payload) else "no messages or prompt"
            return InjectionResult(request=request, intercepted=True, reason=reason)

        new_body = _encode_like(body, json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        logger.info(f"Injected stats into {target} of {request.url}")
        return InjectionResult(
            request=replace(request, body=new_body),
            intercepted=True,
            injected=True,
            target=target,
        )

    def wrap(self, send: Callable[[OutboundRequest], T]) -> Callable[[OutboundRequest], T]:
        """Wrap a transport so every request passes through ``process``.

        The original *send* is called exactly once per request, intercepted
        or not.
        """
        def send_with_stats(request: OutboundRequest) -> T:
            result = self.process(request)
            return send(result.request)

        send_with_stats.__wrapped__ = send
        return send_with_stats
