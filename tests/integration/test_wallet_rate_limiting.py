from tests.conftest import ADMIN_ID, RIDER_ID, USER_ID

TRANSFER_BODY = {
    "sender": {"kind": "admin", "id": ADMIN_ID},
    "recipient": {"kind": "rider", "id": RIDER_ID},
    "amount": "1.00",
    "narration": "tip",
}


class TestTransferRateLimiting:
    def test_transfers_limited_per_client(self, client, admin_headers, configure):
        configure(TRANSFER_RATE_LIMIT="3/minute")

        statuses = [
            client.post("/wallet/transfers", json=TRANSFER_BODY, headers=admin_headers).status_code
            for _ in range(4)
        ]

        assert statuses == [200, 200, 200, 429]

    def test_rejected_request_moves_no_money(self, client, admin_headers, store, configure):
        configure(TRANSFER_RATE_LIMIT="1/minute")

        client.post("/wallet/transfers", json=TRANSFER_BODY, headers=admin_headers)
        response = client.post("/wallet/transfers", json=TRANSFER_BODY, headers=admin_headers)

        assert response.status_code == 429
        assert store.snapshot()["documents"][("Riders", RIDER_ID)]["walletbalance"] == 1

    def test_reads_have_their_own_limit(self, client, admin_headers, configure):
        configure(TRANSFER_RATE_LIMIT="1/minute", API_RATE_LIMIT="2/minute")

        client.post("/wallet/transfers", json=TRANSFER_BODY, headers=admin_headers)
        statuses = [
            client.get(f"/wallet/parties/user/{USER_ID}/balance", headers=admin_headers).status_code
            for _ in range(3)
        ]

        assert statuses == [200, 200, 429]
