from locust import HttpUser, task, between
import random

ACTIONS = ["start", "pause", "stop"]


class TraderUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register a user for this simulated client; the session cookie sticks to self.client
        email = f"load_{random.randint(1, 1_000_000)}@pinebridge.com"
        self.script_ids = []
        r = self.client.post("/api/register", json={
            "email": email,
            "password": "loadtest",
            "first_name": "Load",
            "last_name": "Test",
            "country": "US",
        })
        self.registered = r.status_code == 201

    @task(2)
    def create_script(self):
        if not self.registered:
            return
        r = self.client.post("/api/scripts", json={
            "name": f"Strategy {random.randint(1, 9999)}",
            "code": "//@version=5\nstrategy('load')",
        })
        if r.status_code == 201:
            self.script_ids.append(r.json()["id"])

    @task(5)
    def toggle_script(self):
        if not self.script_ids:
            return
        sid = random.choice(self.script_ids)
        self.client.patch(f"/api/scripts/{sid}/{random.choice(ACTIONS)}", name="/api/scripts/[id]/[action]")

    @task(1)
    def list_scripts(self):
        if self.registered:
            self.client.get("/api/scripts")
