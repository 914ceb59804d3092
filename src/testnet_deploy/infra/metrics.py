#!/usr/bin/env python3
"""
Metrics sink for deployment lifecycle events.

Datapoints are InfluxDB line-protocol strings such as
"testnet-deploy client-begin=1". They are posted to the write endpoint
described by SOLANA_METRICS_CONFIG ("host=...,db=...,u=...,p=..."). When no
configuration is present datapoints are dropped, and a failed write is
reported but never raised: metrics must not block a benchmark.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

import requests

METRICS_CONFIG_ENV = "SOLANA_METRICS_CONFIG"


@dataclass(frozen=True)
class MetricsConfig:
    host: str
    db: str
    user: str = ""
    password: str = ""

    @classmethod
    def parse(cls, value: str) -> Optional["MetricsConfig"]:
        """
        Parse "host=...,db=...,u=...,p=...".

        Returns:
            MetricsConfig, or None if value is empty or lacks host/db
        """
        fields = {}
        for part in (value or "").split(","):
            if "=" not in part:
                continue
            key, val = part.split("=", 1)
            fields[key.strip()] = val.strip()
        if not fields.get("host") or not fields.get("db"):
            return None
        return cls(
            host=fields["host"].rstrip("/"),
            db=fields["db"],
            user=fields.get("u", ""),
            password=fields.get("p", ""),
        )

    @property
    def write_url(self) -> str:
        return f"{self.host}/write"

    @property
    def params(self) -> dict:
        params = {"db": self.db}
        if self.user:
            params["u"] = self.user
        if self.password:
            params["p"] = self.password
        return params


class MetricsSink(ABC):
    @abstractmethod
    def write_datapoint(self, measurement: str) -> bool:
        """Write one line-protocol datapoint. Returns True if it was accepted."""
        pass


class NullMetricsSink(MetricsSink):
    """Discards datapoints; used when metrics are not configured."""

    def write_datapoint(self, measurement: str) -> bool:
        return False


class InfluxMetricsSink(MetricsSink):
    """Posts datapoints to an InfluxDB /write endpoint with requests."""

    def __init__(self, config: MetricsConfig, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.config = config
        self.timeout = timeout
        self.session = session or requests.Session()

    def write_datapoint(self, measurement: str) -> bool:
        try:
            response = self.session.post(
                self.config.write_url,
                params=self.config.params,
                data=measurement.encode("utf-8"),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            print(f"⚠ Metrics write failed: {e}", flush=True)
            return False
        if response.status_code >= 300:
            print(f"⚠ Metrics write returned status {response.status_code}", flush=True)
            return False
        return True


def create_metrics_sink(env: Mapping[str, str]) -> MetricsSink:
    """Build the sink described by the environment, or a NullMetricsSink."""
    config = MetricsConfig.parse(env.get(METRICS_CONFIG_ENV, ""))
    if config is None:
        return NullMetricsSink()
    return InfluxMetricsSink(config)
