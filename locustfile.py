"""
Load testing script for the Treasury Relay ledger using Locust.

Run with:
    locust -f locustfile.py --host=http://localhost:8000 --headless -u 100 -r 10 -t 60s

Parameters:
    -u: Number of concurrent users
    -r: Spawn rate (users per second)
    -t: Test duration

Withdrawals need a configured treasury, so they are left out; the ledger
side (deposits, replays, balances, history) is what gets exercised.
"""

from locust import HttpUser, task, between
import random
import uuid


class LedgerUser(HttpUser):
    """
    Simulates a wallet receiving payments and checking its balance.

    Task weights determine request distribution:
    - 60% balance checks (most frequent)
    - 20% new deposits
    - 10% replayed deposits (same tx hash)
    - 10% history reads
    """

    # Wait 1-3 seconds between requests per user
    wait_time = between(1, 3)

    def on_start(self):
        """Register a fresh wallet and username"""
        suffix = uuid.uuid4().hex
        self.wallet = "0x" + suffix + suffix[:8]
        self.username = f"load{suffix[:12]}"
        self.last_tx_hash = None

        self.client.post(
            "/api/v1/users",
            json={"walletAddress": self.wallet, "username": self.username},
            name="/api/v1/users (setup)"
        )

    def _deposit(self, tx_hash, name):
        self.client.post(
            "/api/v1/payments",
            json={
                "senderAddress": "0x" + "f" * 40,
                "recipientIdentifier": self.username,
                "amount": f"{random.uniform(0.01, 5.0):.8f}",
                "txHash": tx_hash,
            },
            name=name
        )

    @task(60)
    def check_balance(self):
        """Check ledger balance (60% of requests)"""
        self.client.get(
            f"/api/v1/balances/{self.username}",
            name="/api/v1/balances/:username"
        )

    @task(20)
    def deposit(self):
        """Record a new deposit (20% of requests)"""
        self.last_tx_hash = "0x" + uuid.uuid4().hex
        self._deposit(self.last_tx_hash, "/api/v1/payments")

    @task(10)
    def replay_deposit(self):
        """Replay the last deposit; must not credit twice (10% of requests)"""
        if self.last_tx_hash:
            self._deposit(self.last_tx_hash, "/api/v1/payments (replay)")

    @task(10)
    def history(self):
        """Read payment history (10% of requests)"""
        self.client.get(
            f"/api/v1/payments/{self.username}",
            name="/api/v1/payments/:username"
        )

    @task(5)
    def health_check(self):
        """Hit health endpoint (5% of requests)"""
        self.client.get("/health", name="/health")
