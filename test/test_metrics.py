"""
Tests for the InfluxDB metrics sink.
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from testnet_deploy.infra.metrics import (
    InfluxMetricsSink,
    MetricsConfig,
    NullMetricsSink,
    create_metrics_sink,
)

CONFIG = "host=http://metrics.local:8086/,db=testnet,u=writer,p=secret"


class TestMetricsConfig(unittest.TestCase):
    def test_parse(self):
        config = MetricsConfig.parse(CONFIG)
        self.assertEqual(config.write_url, "http://metrics.local:8086/write")
        self.assertEqual(config.params, {"db": "testnet", "u": "writer", "p": "secret"})

    def test_parse_without_credentials(self):
        config = MetricsConfig.parse("host=http://m:8086,db=tds")
        self.assertEqual(config.params, {"db": "tds"})

    def test_parse_incomplete(self):
        self.assertIsNone(MetricsConfig.parse(""))
        self.assertIsNone(MetricsConfig.parse("host=http://m:8086"))
        self.assertIsNone(MetricsConfig.parse("garbage"))


class TestInfluxMetricsSink(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.sink = InfluxMetricsSink(MetricsConfig.parse(CONFIG), timeout=2.0, session=self.session)

    def test_write_datapoint(self):
        self.session.post.return_value = MagicMock(status_code=204)

        self.assertTrue(self.sink.write_datapoint("testnet-deploy client-begin=1"))
        self.session.post.assert_called_once_with(
            "http://metrics.local:8086/write",
            params={"db": "testnet", "u": "writer", "p": "secret"},
            data=b"testnet-deploy client-begin=1",
            timeout=2.0,
        )

    def test_connection_error_is_not_raised(self):
        self.session.post.side_effect = requests.ConnectionError("refused")
        self.assertFalse(self.sink.write_datapoint("testnet-deploy client-begin=1"))

    def test_rejected_write(self):
        self.session.post.return_value = MagicMock(status_code=400)
        self.assertFalse(self.sink.write_datapoint("bad line"))


class TestCreateMetricsSink(unittest.TestCase):
    def test_unconfigured(self):
        sink = create_metrics_sink({})
        self.assertIsInstance(sink, NullMetricsSink)
        self.assertFalse(sink.write_datapoint("testnet-deploy client-begin=1"))

    def test_configured(self):
        sink = create_metrics_sink({"SOLANA_METRICS_CONFIG": CONFIG})
        self.assertIsInstance(sink, InfluxMetricsSink)
        self.assertEqual(sink.config.db, "testnet")


if __name__ == "__main__":
    unittest.main()
