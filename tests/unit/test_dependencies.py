# tests/unit/test_dependencies.py
from unittest.mock import AsyncMock

import pytest

from app.dependencies import get_shipping_carrier


@pytest.mark.asyncio
async def test_shipping_carrier_is_closed_after_request(mocker):
    carrier = AsyncMock()
    mocker.patch("app.dependencies.get_carrier", return_value=carrier)

    dependency = get_shipping_carrier()
    assert await dependency.__anext__() is carrier
    carrier.close.assert_not_awaited()

    with pytest.raises(StopAsyncIteration):
        await dependency.__anext__()
    carrier.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_shipping_carrier_is_closed_when_request_fails(mocker):
    carrier = AsyncMock()
    mocker.patch("app.dependencies.get_carrier", return_value=carrier)

    dependency = get_shipping_carrier()
    await dependency.__anext__()
    with pytest.raises(RuntimeError):
        await dependency.athrow(RuntimeError("handler failed"))
    carrier.close.assert_awaited_once()
