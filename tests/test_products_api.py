"""Tests for the product endpoints and the server-side catalog pipeline."""

from butchery.models import Review


def ids(response):
    return [p["id"] for p in response.json()["data"]]


class TestProductListing:
    async def test_default_sort_puts_unavailable_last(self, client, products):
        response = await client.get("/products")
        listed = ids(response)
        assert len(listed) == 4
        assert listed[-1] == "prod_chicken"
        assert set(listed[:3]) == {"prod_ribeye", "prod_mince", "prod_lamb"}

    async def test_premium_pseudo_category(self, client, products):
        response = await client.get("/products", params={"category": "Premium"})
        assert ids(response) == ["prod_ribeye"]

    async def test_category_search_and_price(self, client, products):
        response = await client.get("/products", params={"category": "beef", "max_price": 50})
        assert ids(response) == ["prod_ribeye"]

        response = await client.get("/products", params={"search": "chops"})
        assert ids(response) == ["prod_lamb"]

    async def test_arabic_name_sort(self, client, products):
        response = await client.get("/products", params={"sort": "name", "lang": "ar"})
        names = [p["name_ar"] for p in response.json()["data"]]
        assert names == sorted(names)

    async def test_price_high(self, client, products):
        response = await client.get("/products", params={"sort": "price-high"})
        prices = [p["price"] for p in response.json()["data"]]
        assert prices == sorted(prices, reverse=True)

    async def test_rating_sort_uses_reviews(self, client, db, products):
        db.add_all([
            Review(product_id="prod_lamb", user_id="u1", user_name="A", rating=5),
            Review(product_id="prod_mince", user_id="u1", user_name="A", rating=3),
        ])
        await db.commit()

        response = await client.get("/products", params={"sort": "rating"})
        assert ids(response)[:2] == ["prod_lamb", "prod_mince"]
        assert response.json()["data"][0]["rating"] == 5.0

    async def test_active_filter(self, client, products):
        response = await client.get("/products", params={"active": "false"})
        assert ids(response) == ["prod_chicken"]

    async def test_invalid_sort_is_rejected(self, client, products):
        response = await client.get("/products", params={"sort": "cheapest"})
        assert response.status_code == 400
        assert response.json()["success"] is False


class TestProductAdmin:
    async def test_create_and_fetch(self, client):
        body = {
            "name": "Goat Leg", "name_ar": "فخذ ماعز", "sku": "GOAT-001", "price": 72.5,
            "category": "Goat", "description": "Bone-in leg", "available": False,
        }
        created = await client.post("/products", json=body)
        assert created.status_code == 201
        product_id = created.json()["data"]["id"]

        fetched = await client.get(f"/products/{product_id}")
        data = fetched.json()["data"]
        assert data["price"] == 72.5
        assert data["available"] is False

    async def test_duplicate_sku(self, client, products):
        body = {"name": "Copy", "sku": "BEEF-001", "price": 10, "category": "Beef", "description": "x"}
        response = await client.post("/products", json=body)
        assert response.status_code == 409

    async def test_update_maps_available(self, client, products):
        response = await client.put("/products/prod_chicken", json={"available": True, "price": 27})
        data = response.json()["data"]
        assert data["available"] is True
        assert data["price"] == 27.0

    async def test_delete_and_missing(self, client, products):
        assert (await client.delete("/products/prod_mince")).status_code == 200
        response = await client.get("/products/prod_mince")
        assert response.status_code == 404
        assert response.json()["error"] == "Product not found"
