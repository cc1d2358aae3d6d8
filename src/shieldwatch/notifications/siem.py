"""SIEM export - ships alerts to a security information and event system.

Exports run on a background writer thread so a slow or unavailable SIEM
never delays event ingestion.
"""

from abc import ABC, abstractmethod
import atexit
from datetime import timezone
import json
import logging
import os
import queue
import threading
import time
from typing import List, Optional

import boto3
from botocore.exceptions import ClientError

from shieldwatch.common.constants import NotificationConstants
from shieldwatch.common.exceptions import StorageError
from shieldwatch.data.schemas.alert import Alert

logger = logging.getLogger(__name__)


class SIEMExporter(ABC):
    """Destination for exported alerts."""

    @abstractmethod
    def export(self, alert: Alert) -> None:
        """Export one alert.

        Raises:
            StorageError: If the destination rejects the alert
        """
        pass


class InMemorySIEMExporter(SIEMExporter):
    """Keeps exported alerts in a list."""

    def __init__(self):
        self._exported: List[Alert] = []
        self._lock = threading.Lock()

    def export(self, alert: Alert) -> None:
        with self._lock:
            self._exported.append(alert)

    @property
    def exported(self) -> List[Alert]:
        with self._lock:
            return list(self._exported)


class S3SIEMExporter(SIEMExporter):
    """Writes one JSON object per alert to S3, partitioned by date.

    Key format: {prefix}{environment}/{YYYY-MM-DD}/{alert_id}.json
    """

    DEFAULT_REGION = "us-east-1"
    DEFAULT_PREFIX = "siem-alerts/"
    DEFAULT_ENVIRONMENT = "production"

    def __init__(self, bucket_name: Optional[str] = None,
                 prefix: str = DEFAULT_PREFIX, environment: str = DEFAULT_ENVIRONMENT,
                 region: Optional[str] = None, aws_profile: Optional[str] = None,
                 s3_client=None):
        self.bucket_name = bucket_name or os.environ.get("SHIELDWATCH_SIEM_S3_BUCKET")
        if not self.bucket_name:
            raise ValueError(
                "S3 bucket name required. Set SHIELDWATCH_SIEM_S3_BUCKET or pass bucket_name."
            )

        self.prefix = prefix
        self.environment = environment
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)

        if s3_client is not None:
            self.s3_client = s3_client
        elif aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.s3_client = session.client("s3", region_name=self.region)
        else:
            self.s3_client = boto3.client("s3", region_name=self.region)

        logger.info(
            f"Initialized S3SIEMExporter: bucket={self.bucket_name}, env={self.environment}"
        )

    def _get_key(self, alert: Alert) -> str:
        date = alert.created_at.astimezone(timezone.utc).strftime("%Y-%m-%d")
        return f"{self.prefix}{self.environment}/{date}/{alert.alert_id}.json"

    def export(self, alert: Alert) -> None:
        key = self._get_key(alert)
        body = json.dumps(alert.model_dump(mode="json"), sort_keys=True, default=str)

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=body.encode("utf-8"),
                ContentType="application/json",
                Metadata={
                    "detection-type": alert.detection_type.value,
                    "severity": alert.severity.value,
                    "environment": self.environment,
                },
            )
        except ClientError as e:
            logger.error(f"Failed to export alert to S3: {e}")
            raise StorageError(
                f"S3 SIEM export failed: {e}", details={"key": key}
            ) from e

        logger.debug(f"Exported alert to S3: {key}")


class BackgroundSIEMWriter:
    """Background writer draining a bounded alert queue into an exporter.

    Alerts that do not fit in the queue are dropped and counted.
    """

    DEFAULT_QUEUE_SIZE = NotificationConstants.SIEM_QUEUE_SIZE
    DEFAULT_FLUSH_TIMEOUT = NotificationConstants.SIEM_FLUSH_TIMEOUT_SECONDS

    def __init__(
        self,
        exporter: SIEMExporter,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        flush_timeout: float = DEFAULT_FLUSH_TIMEOUT,
    ):
        """Initialize background SIEM writer.

        Args:
            exporter: Export destination
            max_queue_size: Maximum number of alerts to buffer
            flush_timeout: Timeout for flushing the queue on shutdown
        """
        self.exporter = exporter
        self.max_queue_size = max_queue_size
        self.flush_timeout = flush_timeout

        self._queue: queue.Queue[Optional[Alert]] = queue.Queue(maxsize=max_queue_size)

        self._shutdown_event = threading.Event()
        self._writer_thread: Optional[threading.Thread] = None

        # Statistics
        self._exported = 0
        self._failed = 0
        self._dropped = 0
        self._pending = 0
        self._stats_lock = threading.Condition()

        self._start_writer()
        atexit.register(self.shutdown)

    def _start_writer(self) -> None:
        self._writer_thread = threading.Thread(
            target=self._writer_loop,
            name="SIEMWriter",
            daemon=True,
        )
        self._writer_thread.start()
        logger.info("Background SIEM writer started")

    def _export_one(self, alert: Alert) -> None:
        try:
            self.exporter.export(alert)
            succeeded = True
        except Exception as e:
            logger.error(f"Failed to export alert {alert.alert_id} to SIEM: {e}")
            succeeded = False

        with self._stats_lock:
            if succeeded:
                self._exported += 1
            else:
                self._failed += 1
            self._pending -= 1
            self._stats_lock.notify_all()

    def _writer_loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                alert = self._queue.get(timeout=NotificationConstants.SIEM_QUEUE_GET_TIMEOUT)
            except queue.Empty:
                continue

            if alert is None:
                break
            self._export_one(alert)

        self._drain_queue()
        logger.info("Background SIEM writer stopped")

    def _drain_queue(self) -> None:
        drained = 0
        while True:
            try:
                alert = self._queue.get_nowait()
            except queue.Empty:
                break
            if alert is not None:
                self._export_one(alert)
                drained += 1

        if drained > 0:
            logger.info(f"Drained {drained} SIEM alerts during shutdown")

    def submit(self, alert: Alert) -> bool:
        """Queue an alert for export.

        Returns:
            True if queued, False if the writer is stopped or the queue is full
        """
        if self._shutdown_event.is_set():
            logger.warning(f"SIEM writer stopped, alert {alert.alert_id} not exported")
            return False

        with self._stats_lock:
            self._pending += 1
        try:
            self._queue.put_nowait(alert)
            return True
        except queue.Full:
            with self._stats_lock:
                self._pending -= 1
                self._dropped += 1
            logger.error(f"SIEM queue full, alert {alert.alert_id} dropped")
            return False

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for all queued alerts to be exported.

        Returns:
            True if the queue drained, False if the timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._stats_lock:
            while self._pending > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._stats_lock.wait(timeout=remaining)
        return True

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the writer, exporting what is still queued."""
        if self._shutdown_event.is_set():
            return

        timeout = timeout if timeout is not None else self.flush_timeout

        logger.info("Shutting down background SIEM writer...")
        self._shutdown_event.set()

        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass  # Writer will see the shutdown event

        if self._writer_thread and self._writer_thread.is_alive():
            self._writer_thread.join(timeout=timeout)
            if self._writer_thread.is_alive():
                logger.warning("SIEM writer did not stop cleanly")

        logger.info(
            f"SIEM writer shutdown complete. "
            f"Exported: {self._exported}, Failed: {self._failed}, Dropped: {self._dropped}"
        )

    def get_stats(self) -> dict:
        with self._stats_lock:
            return {
                "exported": self._exported,
                "failed": self._failed,
                "dropped": self._dropped,
                "queue_size": self._queue.qsize(),
                "max_queue_size": self.max_queue_size,
            }

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()
