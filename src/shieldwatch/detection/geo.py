"""Geolocation collaborators for location-jump detection.

No geolocation provider is bundled. A real deployment plugs an IP
geolocation source in through GeoLocator; the default implementation
only uses locations supplied upstream with the event, plus an optional
static network table.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
import ipaddress
import logging
import math
import threading
from typing import Dict, Optional, Union

from shieldwatch.data.schemas.login_event import GeoLocation, LoginEvent
from shieldwatch.models.behavior.profile import AttemptRecord

logger = logging.getLogger(__name__)


EARTH_RADIUS_KM = 6371.0


def haversine_km(a: GeoLocation, b: GeoLocation) -> float:
    """Great-circle distance between two locations in kilometres."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


class GeoLocator(ABC):
    """Resolves a source address to a location."""

    @abstractmethod
    def locate(self, address: str) -> Optional[GeoLocation]:
        """Return the location of an address, or None if unknown."""
        pass


class StaticGeoLocator(GeoLocator):
    """Lookup table of networks to locations.

    Example:
        >>> locator = StaticGeoLocator({
        ...     "10.0.0.0/8": GeoLocation(latitude=48.85, longitude=2.35, city="Paris"),
        ... })
        >>> locator.locate("10.1.2.3").city
        'Paris'
    """

    def __init__(self, networks: Optional[Dict[str, Union[GeoLocation, dict]]] = None):
        self._networks = []
        for cidr, location in (networks or {}).items():
            if isinstance(location, dict):
                location = GeoLocation.model_validate(location)
            self._networks.append((ipaddress.ip_network(cidr, strict=False), location))
        # Most specific network wins
        self._networks.sort(key=lambda item: item[0].prefixlen, reverse=True)

    def locate(self, address: str) -> Optional[GeoLocation]:
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            return None
        for network, location in self._networks:
            if ip.version == network.version and ip in network:
                return location
        return None


class DistanceEstimator:
    """Estimates how far apart two login attempts were made.

    Locations carried on the attempts win; otherwise the locator is
    consulted under a timeout. Unknown locations, lookup errors and
    timeouts all yield None.
    """

    def __init__(
        self,
        locator: Optional[GeoLocator] = None,
        timeout_seconds: float = 1.0,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.locator = locator
        self.timeout_seconds = timeout_seconds
        self._executor = executor
        self._executor_lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="GeoLookup")
            return self._executor

    def _resolve(self, address: str, known: Optional[GeoLocation]) -> Optional[GeoLocation]:
        if known is not None:
            return known
        if self.locator is None:
            return None

        future = self._get_executor().submit(self.locator.locate, address)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            logger.warning(f"Geolocation lookup for {address} timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.warning(f"Geolocation lookup for {address} failed: {type(e).__name__}: {e}")
        return None

    def estimate(self, previous: AttemptRecord, event: LoginEvent) -> Optional[float]:
        """Distance in km between a previous attempt and the current event."""
        before = self._resolve(previous.source_address, previous.geo_location)
        if before is None:
            return None
        now = self._resolve(event.source_address, event.geo_location)
        if now is None:
            return None
        return haversine_km(before, now)

    def shutdown(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
