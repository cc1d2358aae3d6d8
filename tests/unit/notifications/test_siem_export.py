"""Unit tests for SIEM export."""

from datetime import datetime, timezone
import json
import threading
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from shieldwatch.common.exceptions import StorageError
from shieldwatch.core.types import DetectionType, Severity
from shieldwatch.data.schemas.alert import Alert
from shieldwatch.notifications.siem import (
    BackgroundSIEMWriter,
    InMemorySIEMExporter,
    S3SIEMExporter,
    SIEMExporter,
)


def _alert(alert_id: str = "alt_0123456789ab") -> Alert:
    return Alert(
        alert_id=alert_id,
        detection_type=DetectionType.BRUTE_FORCE_ATTEMPT,
        severity=Severity.CRITICAL,
        explanation="Brute force attempt detected",
        subject="alice@example.com",
        source_address="198.51.100.1",
        detected_at=datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
        created_at=datetime(2026, 3, 2, 10, 0, 1, tzinfo=timezone.utc),
    )


class BlockingExporter(SIEMExporter):
    """Exporter that waits until released."""

    def __init__(self):
        self.release = threading.Event()
        self.exported = []

    def export(self, alert):
        self.release.wait(5.0)
        self.exported.append(alert.alert_id)


class FailingExporter(SIEMExporter):
    def export(self, alert):
        raise StorageError("SIEM unavailable")


class TestS3SIEMExporter:
    """Test S3 export."""

    @pytest.fixture
    def mock_boto3(self):
        with patch("shieldwatch.notifications.siem.boto3") as mock:
            yield mock

    @pytest.fixture
    def exporter(self, mock_boto3):
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client
        mock_boto3.Session.return_value.client.return_value = mock_client
        return S3SIEMExporter(
            bucket_name="test-siem-bucket",
            prefix="siem-alerts/",
            environment="test",
        )

    def test_key_format(self, exporter):
        """Keys are partitioned by environment and creation date."""
        assert exporter._get_key(_alert()) == "siem-alerts/test/2026-03-02/alt_0123456789ab.json"

    def test_export_puts_json_object(self, exporter):
        exporter.export(_alert())

        call = exporter.s3_client.put_object.call_args.kwargs
        assert call["Bucket"] == "test-siem-bucket"
        assert call["ContentType"] == "application/json"
        assert call["Metadata"]["severity"] == "critical"
        body = json.loads(call["Body"].decode("utf-8"))
        assert body["alert_id"] == "alt_0123456789ab"
        assert body["detection_type"] == "brute_force_attempt"

    def test_client_error_becomes_storage_error(self, exporter):
        exporter.s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )

        with pytest.raises(StorageError):
            exporter.export(_alert())

    def test_bucket_from_environment(self, mock_boto3, monkeypatch):
        monkeypatch.setenv("SHIELDWATCH_SIEM_S3_BUCKET", "env-bucket")

        assert S3SIEMExporter().bucket_name == "env-bucket"

    def test_bucket_required(self, mock_boto3, monkeypatch):
        monkeypatch.delenv("SHIELDWATCH_SIEM_S3_BUCKET", raising=False)

        with pytest.raises(ValueError):
            S3SIEMExporter()

    def test_profile_uses_session(self, mock_boto3):
        S3SIEMExporter(bucket_name="b", aws_profile="security")

        mock_boto3.Session.assert_called_once_with(profile_name="security")

    def test_injected_client(self):
        client = MagicMock()

        exporter = S3SIEMExporter(bucket_name="b", s3_client=client)
        exporter.export(_alert())

        client.put_object.assert_called_once()


class TestBackgroundSIEMWriter:
    """Test the background export queue."""

    def test_submit_and_flush(self):
        exporter = InMemorySIEMExporter()
        writer = BackgroundSIEMWriter(exporter)
        try:
            assert writer.submit(_alert("alt_a")) is True
            assert writer.submit(_alert("alt_b")) is True
            assert writer.flush(timeout=5.0) is True
        finally:
            writer.shutdown()

        assert [a.alert_id for a in exporter.exported] == ["alt_a", "alt_b"]
        assert writer.get_stats()["exported"] == 2

    def test_full_queue_drops_alert(self):
        exporter = BlockingExporter()
        writer = BackgroundSIEMWriter(exporter, max_queue_size=1)
        try:
            writer.submit(_alert("alt_1"))
            # Wait until the writer has taken the first alert off the queue
            for _ in range(100):
                if writer.get_stats()["queue_size"] == 0:
                    break
                threading.Event().wait(0.01)
            writer.submit(_alert("alt_2"))

            assert writer.submit(_alert("alt_3")) is False
            assert writer.get_stats()["dropped"] == 1
        finally:
            exporter.release.set()
            writer.shutdown()

        assert exporter.exported == ["alt_1", "alt_2"]

    def test_failed_export_is_counted(self):
        writer = BackgroundSIEMWriter(FailingExporter())
        try:
            writer.submit(_alert())
            writer.flush(timeout=5.0)
        finally:
            writer.shutdown()

        assert writer.get_stats()["failed"] == 1

    def test_submit_after_shutdown(self):
        writer = BackgroundSIEMWriter(InMemorySIEMExporter())
        writer.shutdown()

        assert writer.is_running is False
        assert writer.submit(_alert()) is False

    def test_flush_timeout(self):
        exporter = BlockingExporter()
        writer = BackgroundSIEMWriter(exporter)
        try:
            writer.submit(_alert())
            assert writer.flush(timeout=0.05) is False
        finally:
            exporter.release.set()
            writer.shutdown()
