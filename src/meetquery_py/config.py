from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


@dataclass(frozen=True)
class ClientSettings:
    endpoint_url: str | None = None
    region: str | None = None
    connect_timeout: float = 1.0
    read_timeout: float = 3.0
    max_attempts: int = 3
    debug: bool = False

    @staticmethod
    def from_env(environ: Mapping[str, str] = os.environ) -> ClientSettings:
        def number(name: str, default: float) -> float:
            raw = (environ.get(name) or "").strip()
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError as err:
                raise ValueError(f"{name} must be a number") from err

        debug_flag = environ.get("MEETQUERY_DEBUG") or environ.get("DDB_DEBUG_LOGS") or ""
        return ClientSettings(
            endpoint_url=(environ.get("DYNAMODB_ENDPOINT") or "").strip() or None,
            region=(environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or "").strip() or None,
            connect_timeout=number("MEETQUERY_CONNECT_TIMEOUT", 1.0),
            read_timeout=number("MEETQUERY_READ_TIMEOUT", 3.0),
            max_attempts=int(number("MEETQUERY_MAX_ATTEMPTS", 3)),
            debug=debug_flag.strip().lower() in _TRUTHY,
        )


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


def configure_logging(*, debug: bool = False) -> None:
    if debug:
        boto3.set_stream_logger("botocore", logging.DEBUG)
        logging.getLogger("meetquery_py").setLevel(logging.DEBUG)


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=ok,
                    )
                )

        return wrapped


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _InstrumentedClient(client, service, on_call)


def log_call_metric(metric: AwsCallMetric) -> None:
    logger.debug(
        "aws call %s.%s ok=%s seconds=%.4f", metric.service, metric.operation, metric.ok, metric.seconds
    )


def create_dynamodb_client(
    settings: ClientSettings | None = None,
    *,
    session: Any | None = None,
    on_call: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    """Build a new DynamoDB client; callers pass it to the scanners and mutator."""
    settings = settings or ClientSettings.from_env()
    configure_logging(debug=settings.debug)

    sess = session or boto3.session.Session(region_name=settings.region)
    client = cast(Any, sess).client(
        "dynamodb",
        region_name=settings.region,
        endpoint_url=settings.endpoint_url,
        config=create_boto3_config(
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
            max_attempts=settings.max_attempts,
        ),
    )
    if on_call is None and settings.debug:
        on_call = log_call_metric
    if on_call is not None:
        client = instrument_boto3_client(client, service="dynamodb", on_call=on_call)
    return client
