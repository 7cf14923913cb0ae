"""
BLE Connection Handler for D30 Printer.

Handles Bluetooth Low Energy communication using the Bleak library.
"""

import platform
from dataclasses import dataclass
from typing import Optional

from bleak import BleakClient, BleakScanner

from .errors import HandshakeError, NotConnectedError


@dataclass
class PrinterInfo:
    """Information about a discovered printer.

    Attributes:
        name: Device advertised name (e.g., "D30")
        address: MAC address on Linux/Windows, CoreBluetooth UUID on macOS
        rssi: Signal strength in dB
    """
    name: str
    address: str
    rssi: int

    def __str__(self) -> str:
        return f"{self.name} [{self.address}] RSSI: {self.rssi} dB"


class BLEConnection:
    """Manages the BLE link to a D30 printer."""

    # Known device name patterns
    DEVICE_PATTERNS = ["D30", "Q30", "M02", "M110", "M120", "M220", "PHOMEMO"]

    # Platforms with a bleak backend
    SUPPORTED_PLATFORMS = ("Linux", "Darwin", "Windows")

    # Vendor serial service and its write characteristic
    SERVICE_UUID = "0000ff00-0000-1000-8000-00805f9b34fb"
    CHAR_WRITE = "0000ff02-0000-1000-8000-00805f9b34fb"

    def __init__(self):
        self.client: Optional[BleakClient] = None
        self.write_char: Optional[str] = None

    @classmethod
    def is_supported(cls) -> bool:
        """Check whether this runtime has a BLE backend."""
        return platform.system() in cls.SUPPORTED_PLATFORMS

    @classmethod
    async def scan(cls, timeout: float = 10.0) -> list[PrinterInfo]:
        """Scan for D30-family printers, strongest signal first."""
        printers = []
        devices = await BleakScanner.discover(timeout=timeout, return_adv=True)

        for device, adv_data in devices.values():
            name = device.name or adv_data.local_name or ""
            if any(pattern in name.upper() for pattern in cls.DEVICE_PATTERNS):
                printers.append(PrinterInfo(
                    name=name,
                    address=device.address,
                    rssi=adv_data.rssi if adv_data.rssi is not None else -100,
                ))

        return sorted(printers, key=lambda p: p.rssi, reverse=True)

    async def connect(self, address: str):
        """
        Connect to a printer and acquire the write characteristic.

        Raises:
            HandshakeError: If the vendor service or characteristic is missing
            BleakError: If the link cannot be established
        """
        # One link per instance
        await self.disconnect()

        self.client = BleakClient(address)
        try:
            await self.client.connect()
        except Exception:
            self.client = None
            raise

        try:
            self.write_char = self._find_write_characteristic()
        except HandshakeError:
            await self.disconnect()
            raise

    def _find_write_characteristic(self) -> str:
        """Look up the vendor write characteristic on the connected client."""
        service = self.client.services.get_service(self.SERVICE_UUID)
        if service is None:
            raise HandshakeError(f"Service {self.SERVICE_UUID} not found")

        char = service.get_characteristic(self.CHAR_WRITE)
        if char is None:
            raise HandshakeError(f"Characteristic {self.CHAR_WRITE} not found")

        return char.uuid

    async def disconnect(self):
        """Disconnect from the printer. Safe to call when not connected."""
        client = self.client
        self.client = None
        self.write_char = None
        if client and client.is_connected:
            await client.disconnect()

    async def write(self, data: bytes):
        """
        Write one packet and wait for the printer's acknowledgement.

        Raises:
            NotConnectedError: If there is no open characteristic
            BleakError: If the write fails
        """
        if not self.client or not self.write_char:
            raise NotConnectedError("Not connected to printer")

        await self.client.write_gatt_char(self.write_char, data, response=True)

    @property
    def is_connected(self) -> bool:
        """Check if currently connected."""
        return self.client is not None and self.client.is_connected
