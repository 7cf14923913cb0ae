"""
Pytest configuration for D30 printer tests.

Provides fixtures and command-line options for hardware tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from d30printer import D30Printer


def pytest_addoption(parser):
    """Add command-line options for hardware tests."""
    parser.addoption(
        "--address",
        action="store",
        default=None,
        help="Bluetooth address of the printer for hardware tests",
    )


@pytest.fixture
def printer_address(request):
    """Get the printer address from command line."""
    address = request.config.getoption("--address")
    if address is None:
        pytest.skip("No printer address provided (use --address=XX:XX:XX:XX:XX:XX)")
    return address


@pytest.fixture
def mock_connection():
    """A BLE connection double that records every write."""
    conn = MagicMock()
    conn.is_connected = True
    conn.connect = AsyncMock()
    conn.disconnect = AsyncMock()
    conn.written = []

    async def write(data):
        conn.written.append(bytes(data))

    conn.write = AsyncMock(side_effect=write)
    return conn


@pytest.fixture
def fast_printer(mock_connection, mocker):
    """A printer with no settle delays, wired to the connection double."""
    mocker.patch.object(D30Printer, "is_supported", return_value=True)
    printer = D30Printer(header_settle_ms=0, marker_settle_ms=0, footer_settle_ms=0)
    printer.connection = mock_connection
    return printer


@pytest_asyncio.fixture
async def connected_printer(fast_printer):
    """The fast printer after a successful connect."""
    await fast_printer.connect("AA:BB:CC:DD:EE:FF")
    return fast_printer


@pytest_asyncio.fixture
async def hardware_printer(printer_address):
    """Provide a printer connected to real hardware."""
    printer = D30Printer()
    printer.set_debug(True)
    await printer.connect(printer_address)

    yield printer

    await printer.disconnect()
