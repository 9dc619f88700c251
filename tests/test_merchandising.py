"""Test upsell links and product bundles."""
import pytest

from core.errors import ConflictError, NotFoundError, ValidationFailed
from domains.merchandising.service import (
    create_bundle,
    create_upsell,
    delete_bundle,
    list_bundles,
    list_upsells,
    update_bundle,
    update_upsell,
)


@pytest.mark.asyncio
async def test_create_upsell(session, make_product):
    shirt = await make_product(name="Linen Shirt")
    belt = await make_product(name="Leather Belt", price=25)

    upsell = await create_upsell(session, {
        "from_product_id": str(shirt.id),
        "to_product_id": str(belt.id),
        "type": "CROSS_SELL",
        "discount": 10,
        "message": "Complete the look",
    })

    data = upsell.to_dict()
    assert data["type"] == "CROSS_SELL"
    assert data["discount"] == 10.0
    assert data["toProduct"]["name"] == "Leather Belt"
    assert upsell.is_active


@pytest.mark.asyncio
async def test_upsell_validation(session, make_product):
    shirt = await make_product()
    belt = await make_product(name="Belt")

    with pytest.raises(ValidationFailed, match="cannot be an upsell of itself"):
        await create_upsell(session, {"from_product_id": str(shirt.id), "to_product_id": str(shirt.id)})
    with pytest.raises(ValidationFailed, match="Invalid upsell type"):
        await create_upsell(session, {
            "from_product_id": str(shirt.id), "to_product_id": str(belt.id), "type": "SIDEGRADE",
        })
    with pytest.raises(NotFoundError):
        await create_upsell(session, {
            "from_product_id": str(shirt.id), "to_product_id": "00000000-0000-0000-0000-000000000000",
        })

    await create_upsell(session, {"from_product_id": str(shirt.id), "to_product_id": str(belt.id)})
    with pytest.raises(ConflictError, match="already exists"):
        await create_upsell(session, {"from_product_id": str(shirt.id), "to_product_id": str(belt.id)})


@pytest.mark.asyncio
async def test_list_and_update_upsells(session, make_product):
    shirt = await make_product()
    belt = await make_product(name="Belt")
    hat = await make_product(name="Hat")
    link = await create_upsell(session, {"from_product_id": str(shirt.id), "to_product_id": str(belt.id)})
    await create_upsell(session, {
        "from_product_id": str(hat.id), "to_product_id": str(shirt.id), "type": "BUNDLE",
    })

    assert len(await list_upsells(session, product_id=str(shirt.id))) == 2
    assert len(await list_upsells(session, product_id=str(belt.id))) == 1
    assert len(await list_upsells(session, upsell_type="BUNDLE")) == 1
    assert await list_upsells(session, product_id="garbage") == []

    updated = await update_upsell(session, str(link.id), {"is_active": False, "message": None})
    assert not updated.is_active
    assert updated.message is None


@pytest.mark.asyncio
async def test_bundle_lifecycle(session, make_product):
    gift_set = await make_product(name="Gift Set", price=80)
    soap = await make_product(name="Argan Soap", price=12)
    oil = await make_product(name="Argan Oil", price=30)

    bundle = await create_bundle(session, {
        "product_id": str(gift_set.id),
        "savings_percent": 15,
        "items": [
            {"product_id": str(soap.id), "quantity": 2},
            {"product_id": str(oil.id), "quantity": 1, "individual_price": 28},
        ],
    })
    data = bundle.to_dict()
    assert [item["position"] for item in data["items"]] == [0, 1]
    assert data["items"][0]["individualPrice"] == 12.0
    assert data["items"][1]["individualPrice"] == 28.0
    assert data["savingsPercent"] == 15.0

    with pytest.raises(ConflictError) as excinfo:
        await create_bundle(session, {"product_id": str(gift_set.id), "items": [{"product_id": str(soap.id)}]})
    assert excinfo.value.status_code == 409

    bundle = await update_bundle(session, str(bundle.id), {"items": [{"product_id": str(oil.id), "quantity": 3}]})
    assert [item.quantity for item in bundle.items] == [3]

    assert len(await list_bundles(session, product_id=str(gift_set.id))) == 1
    await delete_bundle(session, str(bundle.id))
    assert await list_bundles(session) == []


@pytest.mark.asyncio
async def test_bundle_requires_items(session, make_product):
    gift_set = await make_product(name="Gift Set")
    with pytest.raises(ValidationFailed, match="items array is required"):
        await create_bundle(session, {"product_id": str(gift_set.id), "items": []})


@pytest.mark.asyncio
async def test_bundle_conflict_endpoint(client, admin_headers, make_product):
    gift_set = await make_product(name="Gift Set")
    soap = await make_product(name="Soap", price=5)
    body = {"productId": str(gift_set.id), "items": [{"productId": str(soap.id), "quantity": 1}]}

    resp = await client.post("/api/bundles", json=body, headers=admin_headers)
    assert resp.status_code == 201
    resp = await client.post("/api/bundles", json=body, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json() == {"error": "Bundle already exists for this product"}
