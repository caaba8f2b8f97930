"""Tests for finance accounts, transactions, expenses and the summary."""

import pytest


@pytest.fixture
async def account(client):
    body = {"name": "Main Bank", "type": "bank", "balance": 1000}
    return (await client.post("/finance/accounts", json=body)).json()["data"]


async def balance_of(client, account_id):
    return (await client.get(f"/finance/accounts/{account_id}")).json()["data"]["balance"]


class TestTransactions:
    async def test_sale_credits_and_purchase_debits(self, client, account):
        await client.post("/finance/transactions", json={
            "type": "sale", "amount": 250, "description": "Counter sale", "account_id": account["id"],
        })
        await client.post("/finance/transactions", json={
            "type": "purchase", "amount": 400, "description": "Lamb carcasses", "account_id": account["id"],
        })
        assert await balance_of(client, account["id"]) == 850.0

    async def test_pending_transaction_leaves_balance(self, client, account):
        await client.post("/finance/transactions", json={
            "type": "payout", "status": "pending", "amount": 300,
            "description": "Owner draw", "account_id": account["id"],
        })
        assert await balance_of(client, account["id"]) == 1000.0

    async def test_records_actor_and_filters(self, client, account):
        response = await client.post(
            "/finance/transactions",
            json={"type": "refund", "amount": 20, "description": "Spoiled", "account_id": account["id"]},
            headers={"x-user-id": "finance_1"},
        )
        txn = response.json()["data"]
        assert txn["created_by"] == "finance_1"
        assert txn["account_name"] == "Main Bank"

        refunds = (await client.get("/finance/transactions", params={"type": "refund"})).json()["data"]
        assert [t["id"] for t in refunds] == [txn["id"]]

    async def test_unknown_account(self, client):
        response = await client.post("/finance/transactions", json={
            "type": "sale", "amount": 1, "description": "x", "account_id": "acc_missing",
        })
        assert response.status_code == 404


class TestExpenses:
    async def test_pay_debits_account_and_records_transaction(self, client, account):
        expense = (await client.post("/finance/expenses", json={
            "category": "utilities", "amount": 120, "description": "DEWA bill", "invoice_number": "INV-9",
        })).json()["data"]
        assert expense["status"] == "pending"

        paid = await client.post(f"/finance/expenses/{expense['id']}/pay", json={"account_id": account["id"]})
        assert paid.json()["data"]["status"] == "paid"
        assert paid.json()["data"]["paid_at"] is not None
        assert await balance_of(client, account["id"]) == 880.0

        txns = (await client.get("/finance/transactions", params={"type": "expense"})).json()["data"]
        assert txns[0]["reference"] == "INV-9"

        again = await client.post(f"/finance/expenses/{expense['id']}/pay", json={"account_id": account["id"]})
        assert again.status_code == 400

    async def test_pay_without_account(self, client):
        expense = (await client.post("/finance/expenses", json={
            "category": "rent", "amount": 5000, "description": "Shop rent",
        })).json()["data"]
        response = await client.post(f"/finance/expenses/{expense['id']}/pay")
        assert response.status_code == 400

    async def test_update_filter_delete(self, client):
        expense = (await client.post("/finance/expenses", json={
            "category": "marketing", "amount": 300, "description": "Flyers",
        })).json()["data"]
        await client.put(f"/finance/expenses/{expense['id']}", json={"status": "overdue"})

        overdue = (await client.get("/finance/expenses", params={"status": "overdue"})).json()["data"]
        assert [e["id"] for e in overdue] == [expense["id"]]

        await client.delete(f"/finance/expenses/{expense['id']}")
        assert (await client.get("/finance/expenses")).json()["data"] == []


class TestSummary:
    async def test_summary_counts_paid_orders_only(self, client, account, products, dubai_zone, checkout_payload):
        first = (await client.post("/orders", json=checkout_payload)).json()["data"]
        await client.post("/orders", json=checkout_payload)
        await client.patch(f"/orders/{first['id']}/status", json={"status": "delivered"})

        summary = (await client.get("/finance/summary", params={"period": "today"})).json()["data"]
        assert summary["order_count"] == 1
        assert summary["gross_revenue"] == 141.0
        assert summary["vat_collected"] == 6.0
        assert summary["net_revenue"] == 135.0
        assert summary["cost_of_goods"] == 81.0
        assert summary["gross_profit"] == 54.0
        assert summary["cash_balance"] == 1000.0
