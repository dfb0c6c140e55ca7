"""Tests for the in-memory Data Plane fake itself."""

from __future__ import annotations

from typing import TYPE_CHECKING

from haproxy_txn.client import TRANSACTIONS_PATH, VERSION_PATH, transaction_path

if TYPE_CHECKING:
    from haproxy_txn.client import DataPlaneClient
    from haproxy_txn.memory import FakeDataPlane


async def test_create_requires_version(client: DataPlaneClient) -> None:
    response = await client.request("POST", TRANSACTIONS_PATH)
    assert response.status_code == 400
    assert response.json()["message"] == "version or transaction not specified"


async def test_lifecycle(client: DataPlaneClient, fake: FakeDataPlane) -> None:
    created = await client.request("POST", TRANSACTIONS_PATH, params={"version": "7"})
    assert created.status_code == 201
    assert created.json() == {"id": "txn-1", "_version": 7, "status": "in_progress"}

    committed = await client.request("PUT", transaction_path("txn-1"))
    assert committed.status_code == 202
    assert fake.version == 8

    again = await client.request("PUT", transaction_path("txn-1"))
    assert again.status_code == 400


async def test_writes_need_an_open_transaction(client: DataPlaneClient) -> None:
    response = await client.request("POST", "/services/haproxy/configuration/backends")
    assert response.status_code == 400

    response = await client.request(
        "POST", "/services/haproxy/configuration/backends", transaction_id="txn-404"
    )
    assert response.json()["message"] == "transaction does not exist"


async def test_forced_responses_are_consumed_in_order(
    client: DataPlaneClient, fake: FakeDataPlane
) -> None:
    fake.fail_next("version", 500, "first")
    fake.fail_next("version", 502, body="second")

    assert (await client.request("GET", VERSION_PATH)).status_code == 500
    assert (await client.request("GET", VERSION_PATH)).text == "second"
    assert (await client.request("GET", VERSION_PATH)).json() == {"version": 7}
    assert fake.count("version") == 3
