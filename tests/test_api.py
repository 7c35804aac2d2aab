"""Tests for EcoEchoApiClient - backend statistics endpoints."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from homeassistant.core import HomeAssistant

from custom_components.ecoecho.api import EcoEchoApiClient, NetworkError

BASE_URL = "http://backend.test/api"


def mock_session(
    payload: Any = None, status: int = 200, exc: BaseException | None = None
) -> MagicMock:
    """Return a client session whose request() yields one canned response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    if exc is not None:
        session.request = MagicMock(side_effect=exc)
    else:
        session.request = MagicMock(return_value=context)
    return session


def patch_session(session: MagicMock) -> Any:
    return patch(
        "custom_components.ecoecho.api.async_get_clientsession",
        return_value=session,
    )


class TestGetUserStats:
    """Tests for GET /stats/user."""

    @pytest.mark.asyncio
    async def test_success(self, hass: HomeAssistant) -> None:
        """Test that a success envelope is normalized to server stats."""
        session = mock_session(
            {
                "success": True,
                "data": {
                    "totalItems": 3,
                    "totalWeight": 800,
                    "totalCarbonSaved": 1.5,
                    "recyclableItems": 2,
                },
            }
        )
        client = EcoEchoApiClient(hass, f"{BASE_URL}/", token="abc")

        with patch_session(session):
            stats = await client.async_get_user_stats()

        assert stats["total_items"] == 3
        assert stats["total_weight"] == 800.0
        assert stats["recyclable_items"] == 2

        method, url = session.request.call_args.args
        headers = session.request.call_args.kwargs["headers"]
        assert method == "GET"
        assert url == f"{BASE_URL}/stats/user"
        assert headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_no_token_no_auth_header(self, hass: HomeAssistant) -> None:
        """Test that anonymous requests carry no Authorization header."""
        session = mock_session({"success": True, "data": {}})
        client = EcoEchoApiClient(hass, BASE_URL)

        with patch_session(session):
            await client.async_get_user_stats()

        assert "Authorization" not in session.request.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_http_error(self, hass: HomeAssistant) -> None:
        """Test that a non-2xx status raises NetworkError."""
        client = EcoEchoApiClient(hass, BASE_URL)

        with patch_session(mock_session(status=500)), pytest.raises(NetworkError):
            await client.async_get_user_stats()

    @pytest.mark.asyncio
    async def test_any_2xx_status_accepted(self, hass: HomeAssistant) -> None:
        """Test that a 2xx status other than 200 is a success."""
        session = mock_session({"success": True, "data": {"totalItems": 2}}, status=203)
        client = EcoEchoApiClient(hass, BASE_URL)

        with patch_session(session):
            stats = await client.async_get_user_stats()

        assert stats["total_items"] == 2

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope(self, hass: HomeAssistant) -> None:
        """Test that success=false raises NetworkError."""
        client = EcoEchoApiClient(hass, BASE_URL)

        with (
            patch_session(mock_session({"success": False, "message": "nope"})),
            pytest.raises(NetworkError),
        ):
            await client.async_get_user_stats()

    @pytest.mark.asyncio
    async def test_missing_data(self, hass: HomeAssistant) -> None:
        """Test that an envelope without a data object raises NetworkError."""
        client = EcoEchoApiClient(hass, BASE_URL)

        with (
            patch_session(mock_session({"success": True, "data": []})),
            pytest.raises(NetworkError),
        ):
            await client.async_get_user_stats()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc", [TimeoutError(), aiohttp.ClientConnectionError("refused")]
    )
    async def test_transport_errors(
        self, hass: HomeAssistant, exc: BaseException
    ) -> None:
        """Test that timeouts and client errors raise NetworkError."""
        client = EcoEchoApiClient(hass, BASE_URL)

        with patch_session(mock_session(exc=exc)), pytest.raises(NetworkError):
            await client.async_get_user_stats()


class TestPutUserStats:
    """Tests for PUT /stats/user."""

    @pytest.mark.asyncio
    async def test_body_is_camel_case(self, hass: HomeAssistant) -> None:
        """Test that reconciled stats are sent in the wire format."""
        session = mock_session({"success": True, "data": {"totalItems": 5}})
        client = EcoEchoApiClient(hass, BASE_URL, token="abc")
        stats = {
            "schema_version": 2,
            "total_items": 5,
            "total_weight": 0.8,
            "total_carbon_saved": 2.0,
            "recyclable_items": 4,
            "trees_equivalent": 0.1,
            "last_updated": "2025-01-15T12:00:00+00:00",
        }

        with patch_session(session):
            result = await client.async_put_user_stats(stats)  # type: ignore[arg-type]

        assert result["total_items"] == 5
        assert session.request.call_args.args[0] == "PUT"
        assert session.request.call_args.kwargs["json"] == {
            "totalItems": 5,
            "totalWeight": 0.8,
            "totalCarbonSaved": 2.0,
            "recyclableItems": 4,
            "lastUpdated": "2025-01-15T12:00:00+00:00",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("payload", "status"),
        [(None, 204), ({"success": True}, 201), ({"success": True, "data": None}, 200)],
    )
    async def test_reply_without_data(
        self, hass: HomeAssistant, payload: Any, status: int
    ) -> None:
        """Test that an acknowledgement without a record returns None."""
        client = EcoEchoApiClient(hass, BASE_URL, token="abc")

        with patch_session(mock_session(payload, status=status)):
            result = await client.async_put_user_stats({})  # type: ignore[arg-type]

        assert result is None

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope(self, hass: HomeAssistant) -> None:
        """Test that a PUT rejected with success=false still raises."""
        client = EcoEchoApiClient(hass, BASE_URL, token="abc")

        with (
            patch_session(mock_session({"success": False}, status=200)),
            pytest.raises(NetworkError),
        ):
            await client.async_put_user_stats({})  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_set_token(self, hass: HomeAssistant) -> None:
        """Test that replacing the token changes the Authorization header."""
        session = mock_session({"success": True, "data": {}})
        client = EcoEchoApiClient(hass, BASE_URL, token="old")
        client.set_token("new")

        with patch_session(session):
            await client.async_put_user_stats({})  # type: ignore[arg-type]

        assert client.token == "new"
        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer new"
