from __future__ import annotations

import os
import re
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from referralhub.context import CORRELATION_HEADER

_PUBLIC_CODE_PATH = re.compile(r"^/api/public/referral-codes/(?P<code>[^/]+)")

_provider: TracerProvider | None = None
_console_attached = False


def _provider_for(service_name: str) -> TracerProvider:
    global _provider

    if _provider is None:
        resource = Resource.create(
            {
                "service.name": service_name,
                "service.version": os.getenv("APP_VERSION", "0.1.0"),
                "deployment.environment": os.getenv("APP_ENV", "local"),
            }
        )
        _provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(_provider)
    return _provider


def setup_otel(service_name: str, enable: bool) -> TracerProvider | None:
    global _console_attached

    if not enable:
        return None
    provider = _provider_for(service_name)
    if not _console_attached and os.getenv("OTEL_CONSOLE_EXPORTER", "false").lower() == "true":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        _console_attached = True
    return provider


def setup_inmemory_otel(service_name: str = "referralhub-api") -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _provider_for(service_name).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def get_fastapi_server_request_hook():
    """Tag request spans with tenant, correlation and referral-code attributes."""

    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        headers = dict(scope.get("headers", []))
        correlation_raw = headers.get(CORRELATION_HEADER.encode("latin-1"))
        if correlation_raw:
            span.set_attribute("correlation_id", correlation_raw.decode("utf-8"))
        company_raw = headers.get(b"x-company-id")
        if company_raw:
            span.set_attribute("company_id", company_raw.decode("utf-8"))
        match = _PUBLIC_CODE_PATH.match(scope.get("path", ""))
        if match:
            span.set_attribute("referral_code", match.group("code"))

    return server_request_hook
