"""Tests for product reviews and rating summaries."""

import asyncio

from butchery.reviews import summarize_ratings


def review(user_id, rating, product_id="prod_lamb"):
    return {"product_id": product_id, "user_id": user_id, "user_name": user_id.title(), "rating": rating}


def test_summary_rounds_to_one_decimal():
    summary = summarize_ratings("p", [5, 4, 4])
    assert summary.average_rating == 4.3
    assert summary.total_reviews == 3
    assert summary.rating_distribution == {5: 1, 4: 2, 3: 0, 2: 0, 1: 0}


def test_summary_without_reviews():
    assert summarize_ratings("p", []).average_rating == 0.0


class TestReviewsApi:
    async def test_create_list_and_ratings(self, client, products):
        await client.post("/reviews", json=review("u1", 5))
        await client.post("/reviews", json=review("u2", 2))

        listed = (await client.get("/reviews/product/prod_lamb")).json()["data"]
        assert {r["user_id"] for r in listed} == {"u1", "u2"}

        ratings = (await client.get("/reviews/ratings")).json()["data"]
        assert ratings == [{
            "product_id": "prod_lamb",
            "average_rating": 3.5,
            "total_reviews": 2,
            "rating_distribution": {"5": 1, "4": 0, "3": 0, "2": 1, "1": 0},
        }]

    async def test_one_review_per_user(self, client, products):
        await client.post("/reviews", json=review("u1", 5))
        response = await client.post("/reviews", json=review("u1", 1))
        assert response.status_code == 409

    async def test_rating_range(self, client, products):
        response = await client.post("/reviews", json=review("u1", 6))
        assert response.status_code == 400

    async def test_unknown_product(self, client):
        response = await client.post("/reviews", json=review("u1", 4, product_id="prod_missing"))
        assert response.status_code == 404

    async def test_helpful_and_delete(self, client, products):
        created = (await client.post("/reviews", json=review("u1", 4))).json()["data"]

        helpful = await client.post(f"/reviews/{created['id']}/helpful")
        assert helpful.json()["data"]["helpful_count"] == 1

        await client.delete(f"/reviews/{created['id']}")
        assert (await client.get("/reviews/product/prod_lamb")).json()["data"] == []

    async def test_concurrent_helpful_clicks_all_count(self, file_client):
        created = (await file_client.post("/reviews", json=review("u1", 5, product_id="prod_ribeye"))).json()["data"]

        await asyncio.gather(*(file_client.post(f"/reviews/{created['id']}/helpful") for _ in range(3)))

        listed = (await file_client.get("/reviews/product/prod_ribeye")).json()["data"]
        assert listed[0]["helpful_count"] == 3

    async def test_helpful_unknown_review(self, client):
        response = await client.post("/reviews/rev_missing/helpful")
        assert response.status_code == 404
