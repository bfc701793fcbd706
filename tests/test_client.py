import asyncio
from dataclasses import replace

import pytest

from goalforge_voice.errors import ConfigurationError, TransportError
from goalforge_voice.live.client import (
    MISSING_KEY_MESSAGE,
    ConnectionState,
    LiveConnection,
    build_setup_message,
)
from goalforge_voice.live.events import (
    AudioPayload,
    ConnectionClosed,
    ConnectionLost,
    Interrupted,
    ToolCallBatch,
    TranscriptFragment,
    TurnComplete,
)

from fakes import FakeConnector, FakeWebSocket, settle


DECLARATIONS = [{"name": "add_task_to_plan", "parameters": {"type": "OBJECT"}}]


def test_connect_without_credential_fails_fast(app_config):
    connector = FakeConnector(FakeWebSocket())
    connection = LiveConnection(app_config.live, connector=connector)

    async def scenario():
        with pytest.raises(ConfigurationError) as info:
            await connection.connect(None, "instructions", DECLARATIONS)
        return str(info.value)

    message = asyncio.run(scenario())

    assert message == MISSING_KEY_MESSAGE
    assert connection.state is ConnectionState.ERROR
    assert connector.calls == []


def test_connect_sends_setup_and_waits_for_ack(app_config):
    async def scenario():
        ws = FakeWebSocket()
        connector = FakeConnector(ws)
        connection = LiveConnection(app_config.live, connector=connector)
        await connection.connect("secret", "Be brief.", DECLARATIONS)
        state = connection.state
        await connection.disconnect()
        return ws, connector, state

    ws, connector, state = asyncio.run(scenario())

    assert state is ConnectionState.CONNECTED
    url, kwargs = connector.calls[0]
    assert url.endswith("BidiGenerateContent?key=secret")
    assert kwargs["open_timeout"] == app_config.live.connect_timeout
    setup = ws.sent[0]["setup"]
    assert setup["model"] == f"models/{app_config.live.model}"
    assert setup["generationConfig"]["responseModalities"] == ["AUDIO"]
    assert setup["systemInstruction"]["parts"][0]["text"] == "Be brief."
    assert setup["tools"] == [{"functionDeclarations": DECLARATIONS}]
    assert setup["inputAudioTranscription"] == {}
    assert setup["outputAudioTranscription"] == {}


def test_setup_message_includes_voice_when_configured(app_config):
    config = replace(app_config.live, voice="Puck", model="models/custom")

    setup = build_setup_message(config, "x", [])["setup"]

    assert setup["model"] == "models/custom"
    assert setup["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"] == "Puck"
    assert "tools" not in setup


def test_connect_failure_is_a_transport_error(app_config):
    connection = LiveConnection(app_config.live, connector=FakeConnector(error=OSError("refused")))

    async def scenario():
        with pytest.raises(TransportError):
            await connection.connect("secret", "x", DECLARATIONS)

    asyncio.run(scenario())

    assert connection.state is ConnectionState.ERROR


def test_setup_timeout_is_a_transport_error(app_config):
    async def scenario():
        ws = FakeWebSocket(setup_complete=False)
        connection = LiveConnection(app_config.live, connector=FakeConnector(ws))
        with pytest.raises(TransportError):
            await connection.connect("secret", "x", DECLARATIONS)
        return connection, ws

    connection, ws = asyncio.run(scenario())

    assert connection.state is ConnectionState.ERROR
    assert ws.closed


def test_inbound_messages_become_typed_events(app_config):
    async def scenario():
        ws = FakeWebSocket()
        connection = LiveConnection(app_config.live, connector=FakeConnector(ws))
        await connection.connect("secret", "x", DECLARATIONS)
        ws.push(
            {
                "serverContent": {
                    "inputTranscription": {"text": "add a task"},
                    "modelTurn": {"parts": [{"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": "AAA="}}]},
                }
            }
        )
        ws.push({"serverContent": {"interrupted": True}})
        ws.push({"serverContent": {"turnComplete": True}})
        ws.push({"toolCall": {"functionCalls": [{"id": "1", "name": "complete_subtask", "args": {"taskId": "t"}}]}})
        await settle()
        events = []
        while not connection.events.empty():
            events.append(connection.events.get_nowait())
        await connection.disconnect()
        return events

    events = asyncio.run(scenario())

    assert [type(e) for e in events] == [TranscriptFragment, AudioPayload, Interrupted, TurnComplete, ToolCallBatch]
    assert events[0].stream == "user" and events[0].text == "add a task"
    assert events[4].calls[0].args == {"taskId": "t"}


def test_outbound_messages_are_written_in_order(app_config):
    async def scenario():
        ws = FakeWebSocket()
        connection = LiveConnection(app_config.live, connector=FakeConnector(ws))
        await connection.connect("secret", "x", DECLARATIONS)
        connection.send_audio_chunk({"data": "AAA=", "mimeType": "audio/pcm;rate=16000"})
        connection.send_text("hello")
        connection.send_tool_result("call-1", "complete_subtask", "Function executed successfully.")
        await settle()
        await connection.disconnect()
        return ws

    ws = asyncio.run(scenario())

    assert [list(m)[0] for m in ws.sent] == ["setup", "realtimeInput", "clientContent", "toolResponse"]
    assert ws.sent[2]["clientContent"] == {
        "turns": [{"role": "user", "parts": [{"text": "hello"}]}],
        "turnComplete": True,
    }
    assert ws.sent[3]["toolResponse"]["functionResponses"] == [
        {"id": "call-1", "name": "complete_subtask", "response": {"result": "Function executed successfully."}}
    ]


def test_send_text_requires_connection_and_content(app_config):
    connection = LiveConnection(app_config.live, connector=FakeConnector(FakeWebSocket()))

    with pytest.raises(TransportError):
        connection.send_text("hello")

    async def scenario():
        await connection.connect("secret", "x", DECLARATIONS)
        try:
            with pytest.raises(ValueError):
                connection.send_text("   ")
        finally:
            await connection.disconnect()

    asyncio.run(scenario())


def test_audio_is_dropped_when_not_connected(app_config):
    connection = LiveConnection(app_config.live, connector=FakeConnector(FakeWebSocket()))

    connection.send_audio_chunk({"data": "AAA=", "mimeType": "audio/pcm;rate=16000"})

    assert connection.state is ConnectionState.IDLE


def test_disconnect_is_idempotent(app_config):
    async def scenario():
        ws = FakeWebSocket()
        connection = LiveConnection(app_config.live, connector=FakeConnector(ws))
        await connection.disconnect()
        await connection.connect("secret", "x", DECLARATIONS)
        await connection.disconnect()
        await connection.disconnect()
        return connection, ws

    connection, ws = asyncio.run(scenario())

    assert connection.state is ConnectionState.IDLE
    assert ws.closed


def test_clean_server_close_returns_to_idle(app_config):
    async def scenario():
        ws = FakeWebSocket()
        connection = LiveConnection(app_config.live, connector=FakeConnector(ws))
        await connection.connect("secret", "x", DECLARATIONS)
        ws.push_end()
        event = await asyncio.wait_for(connection.events.get(), timeout=1)
        state = connection.state
        await connection.close()
        return event, state, connection.state

    event, state, after_close = asyncio.run(scenario())

    assert isinstance(event, ConnectionClosed)
    assert state is ConnectionState.IDLE
    assert after_close is ConnectionState.IDLE


def test_abrupt_failure_is_reported_as_connection_lost(app_config):
    async def scenario():
        ws = FakeWebSocket()
        connection = LiveConnection(app_config.live, connector=FakeConnector(ws))
        await connection.connect("secret", "x", DECLARATIONS)
        ws.push_error(ConnectionResetError("connection reset by peer"))
        event = await asyncio.wait_for(connection.events.get(), timeout=1)
        state = connection.state
        await connection.close()
        return event, state, connection.state

    event, state, after_close = asyncio.run(scenario())

    assert isinstance(event, ConnectionLost)
    assert state is ConnectionState.ERROR
    assert after_close is ConnectionState.ERROR


def test_public_state_reports_ready_connection_as_idle():
    assert ConnectionState.CONNECTED.public == "idle"
    assert ConnectionState.CONNECTING.public == "connecting"
    assert ConnectionState.ERROR.public == "error"
