import signal

import uvicorn
from fastapi import FastAPI, status

from conftest import StubMessagingClient
from wa_gateway.server import GatewayServer


def test_send_empty_body(client):
    """Test sending with no fields"""
    response = client.post("/send", json={})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    data = response.json()
    assert data["success"] is False
    assert "number" in data["message"]
    assert "message" in data["message"]
    assert data["data"] == {}


def test_send_missing_message(client):
    response = client.post("/send", json={"number": "123"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_send_blank_fields(client):
    response = client.post("/send", json={"number": "  ", "message": "hi"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_send_invalid_json(client):
    """Test sending a body that is not JSON"""
    response = client.post(
        "/send", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False


def test_send_success(make_client):
    """Test a successful send reaches the client once with the chat id"""
    client, stub = make_client()
    response = client.post("/send", json={"number": "123", "message": "hi"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "success": True,
        "message": "Sent message successfully",
        "data": {},
    }
    assert stub.text_calls == [("123@c.us", "hi")]


def test_send_numeric_number(make_client):
    client, stub = make_client()
    response = client.post("/send", json={"number": 4915112345678, "message": "hi"})
    assert response.status_code == status.HTTP_200_OK
    assert stub.text_calls == [("4915112345678@c.us", "hi")]


def test_send_client_failure_is_not_echoed(make_client):
    """Test a messaging failure returns a generic 500"""
    client, stub = make_client(StubMessagingClient(fail_text=True))
    response = client.post("/send", json={"number": "123", "message": "hi"})
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    data = response.json()
    assert data == {"success": False, "message": "Failed to send message", "data": {}}
    assert "internal-detail" not in response.text
    assert len(stub.text_calls) == 1


def test_send_timeout(make_client):
    """Test a stalled messaging call is cut off by SEND_TIMEOUT"""
    client, stub = make_client(StubMessagingClient(delay=2.0), SEND_TIMEOUT=0.05)
    response = client.post("/send", json={"number": "123", "message": "hi"})
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["message"] == "Failed to send message"


def test_unknown_route_uses_envelope(client):
    response = client.get("/does-not-exist")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["success"] is False


def test_root_reports_session(client):
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    assert data["data"]["status"] == "ok"
    assert data["data"]["session"] in {"ready", "initializing", "disconnected"}
    assert data["data"]["listener"] == "detached"


def test_root_reports_listener_state(client):
    """Test the liveness route follows the attached server through shutdown"""
    server = GatewayServer(uvicorn.Config(FastAPI()))
    client.app.state.context.server = server
    assert client.get("/").json()["data"]["listener"] == "starting"

    server.started = True
    assert client.get("/").json()["data"]["listener"] == "running"

    server.handle_exit(signal.SIGTERM, None)
    assert client.get("/").json()["data"]["listener"] == "stopping"
