"""Tests for the WebSocket session state machine and manager."""

import asyncio
import json
import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from websockets.asyncio.server import serve
from websockets.protocol import State

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from lift_caller.websocket.auth import AccessToken
from lift_caller.websocket.session import (
    CONNECT_FAILED_MESSAGE,
    CONNECTION_CLOSED_MESSAGE,
    CONNECTION_LOST_MESSAGE,
    LiftSession,
    SessionConnectError,
    SessionManager,
    SessionPhase,
    SessionTimeoutError,
)


def make_manager(connect_timeout=1.0):
    return SessionManager(
        endpoint="wss://lift.test/stream-v2",
        subprotocol="koneapi",
        connect_timeout=connect_timeout,
    )


class TestLiftSessionStateMachine:
    """Drive LiftSession events directly, without a transport."""

    @pytest.mark.asyncio
    async def test_open_resolves(self, fake_ws):
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error)
        session.arm()

        assert session.handle_open(fake_ws) is True

        assert await session.wait_open() is session
        assert session.phase is SessionPhase.OPEN
        assert session.is_open
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_before_open(self):
        """Test setup errors reject with the cause and report once."""
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error)
        session.arm()
        cause = OSError("refused")

        session.handle_error(cause)

        on_error.assert_called_once_with(CONNECT_FAILED_MESSAGE)
        with pytest.raises(SessionConnectError) as exc_info:
            await session.wait_open()
        assert exc_info.value.__cause__ is cause
        assert session.phase is SessionPhase.CLOSED

    @pytest.mark.asyncio
    async def test_close_before_open_carries_code(self):
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error)

        session.handle_close(1006, "Connection lost")

        on_error.assert_called_once_with(CONNECT_FAILED_MESSAGE)
        with pytest.raises(SessionConnectError) as exc_info:
            await session.wait_open()
        assert exc_info.value.code == 1006
        assert exc_info.value.reason == "Connection lost"

    @pytest.mark.asyncio
    async def test_settles_once(self):
        """Test error and close on the same attempt settle only once."""
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error, connect_timeout=0.05)
        session.arm()

        session.handle_error(OSError("boom"))
        session.handle_close(1006)
        session.handle_timeout()
        await asyncio.sleep(0.1)

        assert on_error.call_count == 1
        with pytest.raises(SessionConnectError) as exc_info:
            await session.wait_open()
        assert not isinstance(exc_info.value, SessionTimeoutError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test the establishment timer rejects with a timeout error."""
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error, connect_timeout=0.02)
        session.arm()

        with pytest.raises(SessionTimeoutError):
            await session.wait_open()

        on_error.assert_called_once_with(CONNECT_FAILED_MESSAGE)
        session.handle_close(1006)
        assert on_error.call_count == 1

    @pytest.mark.asyncio
    async def test_timer_cancelled_after_open(self, fake_ws):
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error, connect_timeout=0.02)
        session.arm()
        session.handle_open(fake_ws)

        await asyncio.sleep(0.05)

        on_error.assert_not_called()
        assert session.phase is SessionPhase.OPEN

    @pytest.mark.asyncio
    async def test_close_after_open(self, fake_ws):
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error)
        session.handle_open(fake_ws)

        session.handle_close(1001, "going away")
        session.handle_error(OSError("late"))

        on_error.assert_called_once_with(CONNECTION_CLOSED_MESSAGE)
        assert session.phase is SessionPhase.CLOSED
        assert not session.is_open

    @pytest.mark.asyncio
    async def test_error_after_open(self, fake_ws):
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error)
        session.handle_open(fake_ws)

        session.handle_error(OSError("reset"))

        on_error.assert_called_once_with(CONNECTION_LOST_MESSAGE)

    @pytest.mark.asyncio
    async def test_frames(self):
        """Test JSON frames are forwarded and malformed ones dropped."""
        on_message = MagicMock()
        on_error = MagicMock()
        session = LiftSession(on_message, on_error)

        session.handle_frame('{"statusCode": 201}')
        session.handle_frame('not json')
        session.handle_frame(b'\xff\xfe')
        session.handle_frame(b'{"data": {"success": true}}')

        assert on_message.call_count == 2
        on_message.assert_any_call({"statusCode": 201})
        on_message.assert_any_call({"data": {"success": True}})
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_handle_open_after_abort(self, fake_ws):
        """Test a handshake finishing after abort is refused."""
        on_error = MagicMock()
        session = LiftSession(MagicMock(), on_error)

        session.abort()

        assert not session.handle_open(fake_ws)
        assert session.phase is SessionPhase.CLOSED
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_frames(self):
        """Test an exception in on_message is logged, not propagated."""
        on_message = MagicMock(side_effect=[RuntimeError("boom"), None])
        on_error = MagicMock()
        session = LiftSession(on_message, on_error)

        session.handle_frame('{"a": 1}')
        session.handle_frame('{"b": 2}')

        assert on_message.call_count == 2
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_requires_open(self):
        session = LiftSession(MagicMock(), MagicMock())

        with pytest.raises(ConnectionError):
            await session.send("{}")


class TestSessionManager:
    """Test SessionManager.open() over a patched websockets.connect."""

    def test_url_for(self):
        manager = make_manager()

        assert manager.url_for("abc") == "wss://lift.test/stream-v2?accessToken=abc"
        assert manager.url_for(AccessToken("xyz", 0.0)).endswith("?accessToken=xyz")

    @pytest.mark.asyncio
    async def test_open_uses_token_and_subprotocol(self, fake_ws):
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=fake_ws)

            session = await manager.open("tok", MagicMock(), MagicMock())

            args, kwargs = mock_ws.connect.call_args
            assert args[0] == "wss://lift.test/stream-v2?accessToken=tok"
            assert kwargs["subprotocols"] == ["koneapi"]
            assert session.is_open

            await session.close()

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        on_error = MagicMock()
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(side_effect=OSError("Connection refused"))

            with pytest.raises(SessionConnectError):
                await manager.open("tok", MagicMock(), on_error)

        on_error.assert_called_once_with(CONNECT_FAILED_MESSAGE)

    @pytest.mark.asyncio
    async def test_connect_timeout(self):
        """Test a hanging handshake is abandoned after the connect timeout."""
        on_error = MagicMock()
        manager = make_manager(connect_timeout=0.05)
        cancelled = asyncio.Event()

        async def hang(*args, **kwargs):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = hang

            with pytest.raises(SessionTimeoutError):
                await manager.open("tok", MagicMock(), on_error)

            await asyncio.wait_for(cancelled.wait(), timeout=1.0)

        on_error.assert_called_once_with(CONNECT_FAILED_MESSAGE)

    @pytest.mark.asyncio
    async def test_messages_dispatched(self, fake_ws, eventually):
        on_message = MagicMock()
        on_error = MagicMock()
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=fake_ws)
            session = await manager.open("tok", on_message, on_error)

            fake_ws.feed(json.dumps({"statusCode": 201}))
            fake_ws.feed("garbage")
            fake_ws.feed(json.dumps({"data": {"error": "Invalid area"}}))

            await eventually(lambda: on_message.call_count == 2)
            await session.close()

        assert on_message.call_args_list[0].args[0] == {"statusCode": 201}
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_remote_close_reported(self, fake_ws, eventually):
        on_error = MagicMock()
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=fake_ws)
            session = await manager.open("tok", MagicMock(), on_error)

            fake_ws.remote_close(1006, "abnormal")
            await eventually(lambda: on_error.called)

        on_error.assert_called_once_with(CONNECTION_CLOSED_MESSAGE)
        assert session.phase is SessionPhase.CLOSED

    @pytest.mark.asyncio
    async def test_transport_error_reported(self, fake_ws, eventually):
        on_error = MagicMock()
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=fake_ws)
            session = await manager.open("tok", MagicMock(), on_error)

            fake_ws.fail(OSError("connection reset"))
            await eventually(lambda: on_error.called)

        on_error.assert_called_once_with(CONNECTION_LOST_MESSAGE)
        assert fake_ws.close_calls == 1
        assert not session.is_open

    @pytest.mark.asyncio
    async def test_deliberate_close_not_reported(self, fake_ws):
        on_error = MagicMock()
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=fake_ws)
            session = await manager.open("tok", MagicMock(), on_error)

            await session.close()

        on_error.assert_not_called()
        assert session.phase is SessionPhase.CLOSED
        assert fake_ws.close_calls == 1

    @pytest.mark.asyncio
    async def test_server_close_code_reported(self, fake_ws, eventually):
        """Test an application close code after open reads as closed, not lost."""
        on_error = MagicMock()
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=fake_ws)
            session = await manager.open("tok", MagicMock(), on_error)

            fake_ws.remote_close(4001, "token expired")
            await eventually(lambda: on_error.called)

        on_error.assert_called_once_with(CONNECTION_CLOSED_MESSAGE)
        assert session.phase is SessionPhase.CLOSED

    @pytest.mark.asyncio
    async def test_failing_handler_keeps_session(self, fake_ws, eventually):
        on_message = MagicMock(side_effect=[RuntimeError("boom"), None])
        on_error = MagicMock()
        manager = make_manager()

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=fake_ws)
            session = await manager.open("tok", on_message, on_error)

            fake_ws.feed(json.dumps({"data": {"error": "Invalid area"}}))
            fake_ws.feed(json.dumps({"statusCode": 201}))
            await eventually(lambda: on_message.call_count == 2)

            assert session.is_open
            await session.close()

        on_error.assert_not_called()
        assert fake_ws.close_calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_open_closes_socket(self, fake_ws, eventually):
        """Test a handshake that completes after open() is cancelled is closed."""
        on_error = MagicMock()
        manager = make_manager()
        started = asyncio.Event()

        async def slow_connect(*args, **kwargs):
            started.set()
            try:
                await asyncio.sleep(0.1)
            except asyncio.CancelledError:
                # Handshake already on the wire; the socket still arrives
                pass
            return fake_ws

        with patch('lift_caller.websocket.session.websockets') as mock_ws:
            mock_ws.connect = slow_connect
            opening = asyncio.create_task(manager.open("tok", MagicMock(), on_error))
            await started.wait()

            opening.cancel()
            with pytest.raises(asyncio.CancelledError):
                await opening

            await eventually(lambda: fake_ws.close_calls == 1)

        on_error.assert_not_called()
        assert fake_ws.state == State.CLOSED


class TestSessionOverRealServer:
    """Run a session against a local websockets server."""

    @pytest.mark.asyncio
    async def test_server_close_after_frame(self, eventually):
        on_message = MagicMock()
        on_error = MagicMock()

        async def handler(ws):
            await ws.send(json.dumps({"statusCode": 201}))
            await ws.close(4001, "token expired")

        async with serve(handler, "127.0.0.1", 0, subprotocols=["koneapi"]) as server:
            port = server.sockets[0].getsockname()[1]
            manager = SessionManager(endpoint=f"ws://127.0.0.1:{port}/stream-v2")

            session = await manager.open("tok", on_message, on_error)
            await eventually(lambda: on_error.called, timeout=2.0)

        on_message.assert_called_once_with({"statusCode": 201})
        on_error.assert_called_once_with(CONNECTION_CLOSED_MESSAGE)
        assert session.phase is SessionPhase.CLOSED



if __name__ == '__main__':
    pytest.main([__file__, '-v'])
