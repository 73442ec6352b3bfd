import pytest
from fastapi import status
from starlette.websockets import WebSocketDisconnect


def connect(client, user: dict):
    return client.websocket_connect(f"/ws?token={user['token']}&userId={user['id']}")


class TestHandshake:
    """WebSocket 핸드셰이크 인증"""

    def test_invalid_token_is_rejected(self, ws_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect("/ws?token=forged"):
                pass

        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

    def test_missing_token_is_rejected(self, ws_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect("/ws"):
                pass

        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

    def test_claimed_user_must_match_token(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")
        bob = signup_user(ws_client, "Bob", "bob@example.com")

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(f"/ws?token={alice['token']}&userId={bob['id']}"):
                pass

        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

    def test_bearer_header_is_accepted(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")

        with ws_client.websocket_connect("/ws", headers={"Authorization": f"Bearer {alice['token']}"}) as ws:
            assert ws.receive_json() == {"type": "getOnlineUsers", "data": [alice["id"]]}


class TestPresenceOverWebSocket:
    """연결/해제에 따른 presence 이벤트"""

    def test_online_offline_transitions(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")
        bob = signup_user(ws_client, "Bob", "bob@example.com")

        with connect(ws_client, alice) as ws_alice:
            assert ws_alice.receive_json() == {"type": "getOnlineUsers", "data": [alice["id"]]}

            with connect(ws_client, bob) as ws_bob:
                roster = sorted([alice["id"], bob["id"]])
                assert ws_bob.receive_json() == {"type": "getOnlineUsers", "data": roster}

                assert ws_alice.receive_json() == {"type": "userOnline", "data": bob["id"]}
                assert ws_alice.receive_json() == {"type": "getOnlineUsers", "data": roster}

            offline = ws_alice.receive_json()
            assert offline["type"] == "userOffline"
            assert offline["data"]["userId"] == bob["id"]
            assert offline["data"]["lastSeenAt"] is not None
            assert ws_alice.receive_json() == {"type": "getOnlineUsers", "data": [alice["id"]]}

            response = ws_client.get(
                f"/api/presence/{bob['id']}",
                headers={"Authorization": f"Bearer {alice['token']}"}
            )
            assert response.json()["status"] == "recently-online"

    def test_second_device_does_not_repeat_online(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")
        bob = signup_user(ws_client, "Bob", "bob@example.com")

        with connect(ws_client, alice) as ws_alice:
            ws_alice.receive_json()

            with connect(ws_client, bob) as ws_bob_phone:
                ws_bob_phone.receive_json()
                ws_alice.receive_json()  # userOnline
                ws_alice.receive_json()  # getOnlineUsers

                with connect(ws_client, bob) as ws_bob_laptop:
                    assert ws_bob_laptop.receive_json()["type"] == "getOnlineUsers"

                    # 전이가 없었다면 alice가 다음에 받는 프레임은 pong
                    ws_alice.send_json({"type": "ping"})
                    assert ws_alice.receive_json()["type"] == "pong"

    def test_update_presence(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")

        with connect(ws_client, alice) as ws_alice:
            ws_alice.receive_json()

            ws_alice.send_json({"type": "updatePresence", "data": {"status": "away"}})
            update = ws_alice.receive_json()
            assert update["type"] == "userPresenceUpdate"
            assert update["data"]["userId"] == alice["id"]
            assert update["data"]["status"] == "away"

            ws_alice.send_json({"type": "updatePresence", "data": {"status": "recently-online"}})
            error = ws_alice.receive_json()
            assert error["type"] == "error"
            assert error["data"]["errorCode"] == "validation_error"

            ws_alice.send_json({"type": "updatePresence", "data": {"status": "sleeping"}})
            assert ws_alice.receive_json()["data"]["errorCode"] == "invalid_status"


class TestMessagingOverWebSocket:
    """메시지/타이핑 실시간 전달"""

    def test_http_send_is_pushed_to_both_sides(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")
        bob = signup_user(ws_client, "Bob", "bob@example.com")

        with connect(ws_client, bob) as ws_bob:
            ws_bob.receive_json()

            with connect(ws_client, alice) as ws_alice:
                ws_alice.receive_json()
                ws_bob.receive_json()  # userOnline
                ws_bob.receive_json()  # getOnlineUsers

                response = ws_client.post(
                    f"/api/messages/send/{bob['id']}",
                    json={"text": "hi bob"},
                    headers={"Authorization": f"Bearer {alice['token']}"}
                )
                assert response.status_code == status.HTTP_201_CREATED
                message = response.json()

                assert ws_bob.receive_json() == {"type": "newMessage", "data": message}
                assert ws_alice.receive_json() == {"type": "newMessage", "data": message}

                deleted = ws_client.delete(
                    f"/api/messages/delete/{message['id']}",
                    headers={"Authorization": f"Bearer {alice['token']}"}
                )
                assert deleted.status_code == status.HTTP_200_OK

                frame = ws_bob.receive_json()
                assert frame["type"] == "messageDeleted"
                assert frame["data"]["messageId"] == message["id"]

    def test_typing_indicator(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")
        bob = signup_user(ws_client, "Bob", "bob@example.com")

        with connect(ws_client, bob) as ws_bob:
            ws_bob.receive_json()

            with connect(ws_client, alice) as ws_alice:
                ws_alice.receive_json()
                ws_bob.receive_json()
                ws_bob.receive_json()

                ws_alice.send_json({"type": "typing", "data": {"receiverId": bob["id"], "isTyping": True}})

                assert ws_bob.receive_json() == {
                    "type": "userTyping",
                    "data": {"senderId": alice["id"], "isTyping": True}
                }

    def test_bad_frames_get_error_notices(self, ws_client, signup_user):
        alice = signup_user(ws_client, "Alice", "alice@example.com")

        with connect(ws_client, alice) as ws_alice:
            ws_alice.receive_json()

            ws_alice.send_text("not json")
            assert ws_alice.receive_json()["data"]["errorCode"] == "invalid_json"

            ws_alice.send_json({"type": "dance"})
            assert ws_alice.receive_json()["data"]["errorCode"] == "unknown_message_type"

            # 연결은 유지됨
            ws_alice.send_json({"type": "ping"})
            assert ws_alice.receive_json()["type"] == "pong"
