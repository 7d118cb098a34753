# valet/services/nfc_device.py
"""
Physical NFC I/O collaborator.

The core treats the reader/writer as three opaque primitives: read the id on
the tag in the field, write an id to it, erase it. SimulatedNfcDevice keeps a
single tag in memory (bench setups, tests); HttpNfcDevice talks to a reader
bridge on the station LAN.
"""

from typing import Optional

import httpx

from valet.config import settings
from valet.services.errors import DeviceError
from valet.utils.logger import get_logger

logger = get_logger(__name__)


class NfcDevice:
    def read(self) -> Optional[str]:
        raise NotImplementedError

    def write(self, card_id: str):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError


class SimulatedNfcDevice(NfcDevice):
    """One tag that is always in the field."""

    def __init__(self, card_id: Optional[str] = None):
        self.card_id = card_id

    def read(self) -> Optional[str]:
        return self.card_id

    def write(self, card_id: str):
        self.card_id = card_id

    def clear(self):
        self.card_id = None


class HttpNfcDevice(NfcDevice):
    """
    Reader bridge API:
      GET  /tag        → {"card_id": str|null}
      POST /tag        {"card_id": str}
      POST /tag/clear
    """

    def __init__(self, base_url: str, timeout: float = 3.0, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_settings(cls) -> "HttpNfcDevice":
        return cls(settings.NFC_BRIDGE_URL, timeout=settings.NFC_TIMEOUT_SECONDS)

    def _call(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.error(f"[NFC] {method} {path} → HTTP {e.response.status_code}")
            raise DeviceError(f"NFC bridge returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"[NFC] {method} {path} failed: {e}")
            raise DeviceError(f"NFC bridge unreachable: {e}") from e

    def read(self) -> Optional[str]:
        return self._call("GET", "/tag").json().get("card_id")

    def write(self, card_id: str):
        self._call("POST", "/tag", json={"card_id": card_id})

    def clear(self):
        self._call("POST", "/tag/clear")


def device_from_settings() -> NfcDevice:
    if settings.NFC_BRIDGE_URL:
        logger.info(f"[NFC] Using reader bridge at {settings.NFC_BRIDGE_URL}")
        return HttpNfcDevice.from_settings()
    logger.info("[NFC] No reader bridge configured, using simulated tag")
    return SimulatedNfcDevice()
