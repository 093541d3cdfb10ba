# gastrocore/scripts/seed_data.py
import asyncio
import logging

from gastrocore.core.db import init_db, close_db
from gastrocore.models.business import BusinessType, OperationMode
from gastrocore.services.catalog_service import create_inventory_item, create_product, set_recipe_ingredient
from gastrocore.services.gatekeeping import ConfiguredAccountGate
from gastrocore.services.provisioning import create_business_and_owner_membership

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("gastrocore.seed")

DEMO_OWNER = "demo-owner"


async def seed():
    result = await create_business_and_owner_membership(
        actor_user_id=DEMO_OWNER,
        name="Demo Taqueria",
        type=BusinessType.TAQUERIA,
        operation_mode=OperationMode.COUNTER,
        gate=ConfiguredAccountGate(blocked_user_ids=()),
    )
    if not result.success:
        # Re-running the seed is fine; the owner already has a business
        log.info(f"Seed skipped: {result.code}")
        return

    business_id = result.business_id
    log.info(f"Business: {business_id}")

    tortillas = await create_inventory_item(business_id, DEMO_OWNER, "Tortillas", unit="pz", stock_min=50, initial_stock=500)
    pastor = await create_inventory_item(business_id, DEMO_OWNER, "Carne al pastor", unit="kg", stock_min=2, initial_stock=10)
    soda = await create_inventory_item(business_id, DEMO_OWNER, "Refresco", unit="pz", stock_min=12, initial_stock=48)

    p1 = await create_product(business_id, DEMO_OWNER, "Taco al pastor", "25.00")
    p2 = await create_product(business_id, DEMO_OWNER, "Orden de pastor", "120.00")
    p3 = await create_product(business_id, DEMO_OWNER, "Refresco", "30.00", inventory_item_id=soda.id)

    # One taco: a tortilla and 80 g of meat; an order: five tortillas and 400 g
    await set_recipe_ingredient(business_id, DEMO_OWNER, p1.id, tortillas.id, 1)
    await set_recipe_ingredient(business_id, DEMO_OWNER, p1.id, pastor.id, "0.080")
    await set_recipe_ingredient(business_id, DEMO_OWNER, p2.id, tortillas.id, 5)
    await set_recipe_ingredient(business_id, DEMO_OWNER, p2.id, pastor.id, "0.400")

    log.info(f"Products: {p1.id} {p2.id} {p3.id}")


async def main():
    await init_db()
    await seed()
    await close_db()

if __name__ == "__main__":
    asyncio.run(main())
