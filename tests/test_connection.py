"""Tests for BLE connection handling."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from d30printer.connection import BLEConnection, PrinterInfo
from d30printer.errors import HandshakeError, NotConnectedError


def make_client(service_found=True, char_found=True):
    """A BleakClient double exposing the vendor service."""
    client = MagicMock()
    client.is_connected = True
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    client.write_gatt_char = AsyncMock()

    char = MagicMock()
    char.uuid = BLEConnection.CHAR_WRITE
    service = MagicMock()
    service.get_characteristic.return_value = char if char_found else None
    client.services.get_service.return_value = service if service_found else None
    return client


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_acquires_characteristic(self):
        client = make_client()
        with patch("d30printer.connection.BleakClient", return_value=client):
            conn = BLEConnection()
            await conn.connect("AA:BB:CC:DD:EE:FF")

        assert conn.write_char == BLEConnection.CHAR_WRITE
        assert conn.is_connected
        client.services.get_service.assert_called_once_with(BLEConnection.SERVICE_UUID)

    @pytest.mark.asyncio
    async def test_missing_service_raises_handshake_error(self):
        client = make_client(service_found=False)
        with patch("d30printer.connection.BleakClient", return_value=client):
            conn = BLEConnection()
            with pytest.raises(HandshakeError, match="Service"):
                await conn.connect("AA:BB:CC:DD:EE:FF")

        client.disconnect.assert_awaited_once()
        assert conn.client is None

    @pytest.mark.asyncio
    async def test_missing_characteristic_raises_handshake_error(self):
        client = make_client(char_found=False)
        with patch("d30printer.connection.BleakClient", return_value=client):
            conn = BLEConnection()
            with pytest.raises(HandshakeError, match="Characteristic"):
                await conn.connect("AA:BB:CC:DD:EE:FF")

    @pytest.mark.asyncio
    async def test_link_failure_propagates(self):
        client = make_client()
        client.connect = AsyncMock(side_effect=OSError("radio off"))
        with patch("d30printer.connection.BleakClient", return_value=client):
            conn = BLEConnection()
            with pytest.raises(OSError):
                await conn.connect("AA:BB:CC:DD:EE:FF")
        assert conn.client is None

    @pytest.mark.asyncio
    async def test_reconnect_closes_previous_client(self):
        first, second = make_client(), make_client()
        with patch("d30printer.connection.BleakClient", side_effect=[first, second]):
            conn = BLEConnection()
            await conn.connect("AA:BB:CC:DD:EE:FF")
            await conn.connect("11:22:33:44:55:66")

        first.disconnect.assert_awaited_once()
        second.disconnect.assert_not_awaited()
        assert conn.client is second


class TestWrite:
    @pytest.mark.asyncio
    async def test_write_with_response(self):
        client = make_client()
        with patch("d30printer.connection.BleakClient", return_value=client):
            conn = BLEConnection()
            await conn.connect("AA:BB:CC:DD:EE:FF")

        await conn.write(b"\x1b\x40")
        client.write_gatt_char.assert_awaited_once_with(
            BLEConnection.CHAR_WRITE, b"\x1b\x40", response=True
        )

    @pytest.mark.asyncio
    async def test_write_when_disconnected(self):
        with pytest.raises(NotConnectedError):
            await BLEConnection().write(b"\x00")

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self):
        client = make_client()
        client.write_gatt_char = AsyncMock(side_effect=OSError("write failed"))
        with patch("d30printer.connection.BleakClient", return_value=client):
            conn = BLEConnection()
            await conn.connect("AA:BB:CC:DD:EE:FF")

        with pytest.raises(OSError, match="write failed"):
            await conn.write(b"\x00")


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self):
        client = make_client()
        with patch("d30printer.connection.BleakClient", return_value=client):
            conn = BLEConnection()
            await conn.connect("AA:BB:CC:DD:EE:FF")

        await conn.disconnect()
        await conn.disconnect()

        client.disconnect.assert_awaited_once()
        assert not conn.is_connected
        assert conn.write_char is None

    @pytest.mark.asyncio
    async def test_disconnect_without_connect(self):
        conn = BLEConnection()
        await conn.disconnect()
        assert not conn.is_connected


class TestScan:
    @pytest.mark.asyncio
    async def test_scan_filters_and_sorts(self):
        def device(name, address):
            d = MagicMock()
            d.name = name
            d.address = address
            return d

        def adv(rssi, local_name=None):
            a = MagicMock()
            a.rssi = rssi
            a.local_name = local_name
            return a

        discovered = {
            "1": (device("D30", "AA:AA:AA:AA:AA:AA"), adv(-70)),
            "2": (device("Headphones", "BB:BB:BB:BB:BB:BB"), adv(-30)),
            "3": (device(None, "CC:CC:CC:CC:CC:CC"), adv(-40, "Q30S")),
            "4": (device("phomemo M110", "DD:DD:DD:DD:DD:DD"), adv(None)),
        }
        with patch(
            "d30printer.connection.BleakScanner.discover",
            new=AsyncMock(return_value=discovered),
        ):
            printers = await BLEConnection.scan(timeout=1)

        assert [p.address for p in printers] == [
            "CC:CC:CC:CC:CC:CC",
            "AA:AA:AA:AA:AA:AA",
            "DD:DD:DD:DD:DD:DD",
        ]
        assert printers[0].name == "Q30S"
        assert printers[2].rssi == -100


class TestPrinterInfo:
    def test_str(self):
        info = PrinterInfo(name="D30", address="AA:BB:CC:DD:EE:FF", rssi=-45)
        assert str(info) == "D30 [AA:BB:CC:DD:EE:FF] RSSI: -45 dB"


class TestPlatformSupport:
    @pytest.mark.parametrize("system,supported", [
        ("Linux", True),
        ("Darwin", True),
        ("Windows", True),
        ("Emscripten", False),
    ])
    def test_is_supported(self, system, supported):
        with patch("d30printer.connection.platform.system", return_value=system):
            assert BLEConnection.is_supported() is supported
