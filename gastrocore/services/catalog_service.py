import logging
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from tortoise.transactions import in_transaction

from gastrocore.core.db import translate_connectivity
from gastrocore.core.errors import InvalidMovement, InvalidRequest, NotFound
from gastrocore.events.audit_utility import record_audit
from gastrocore.models.inventory import InventoryItem, MovementType, TrackMode
from gastrocore.models.order import Product, ProductRecipe
from gastrocore.services.inventory_ledger import apply_movement, normalize_delta
from gastrocore.services.membership import require_permission
from gastrocore.services.quota import LimitType, enforce_limit

log = logging.getLogger("gastrocore.catalog")


@translate_connectivity
async def create_inventory_item(
    business_id: UUID,
    actor_user_id: str,
    name: str,
    unit: str = "pz",
    stock_min: Union[Decimal, int, str] = 0,
    track_mode: Union[TrackMode, str] = TrackMode.AUTO,
    initial_stock: Union[Decimal, int, str] = 0,
) -> InventoryItem:
    """
    Creates an item at zero stock. Any opening stock is posted as an
    adjustment movement in the same transaction, so the ledger always adds up
    to stock_current and a failed opening movement leaves no item behind.
    """
    await require_permission(business_id, actor_user_id, "inventory:adjust")
    initial_stock = Decimal(str(initial_stock))

    async with in_transaction() as conn:
        item = await InventoryItem.create(
            business_id=business_id,
            name=name.strip(),
            unit=unit,
            stock_current=Decimal("0"),
            stock_min=Decimal(str(stock_min)),
            track_mode=TrackMode(track_mode),
            using_db=conn
        )
        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action="create",
            entity="inventory",
            entity_id=item.id,
            metadata={"name": item.name, "unit": unit},
            conn=conn
        )

        if initial_stock != 0:
            result = await apply_movement(
                item_id=item.id,
                business_id=business_id,
                type=MovementType.ADJUSTMENT,
                delta=initial_stock,
                reason="Initial stock",
                actor_user_id=actor_user_id,
                conn=conn,
            )
            item.stock_current = result.new_stock

    log.info(f"Inventory item {item.id} ({item.name}) created in business {business_id}.")
    return item


@translate_connectivity
async def create_product(
    business_id: UUID,
    actor_user_id: str,
    name: str,
    price: Union[Decimal, int, str],
    inventory_item_id: Optional[UUID] = None,
) -> Product:
    """Creates a menu product, subject to the products quota (soft limit)."""
    await require_permission(business_id, actor_user_id, "product:create")
    await enforce_limit(business_id, LimitType.PRODUCTS)

    if inventory_item_id is not None:
        exists = await InventoryItem.filter(
            id=inventory_item_id, business_id=business_id, deleted_at__isnull=True
        ).exists()
        if not exists:
            raise NotFound(f"Inventory item {inventory_item_id} not found in business {business_id}.")

    async with in_transaction() as conn:
        product = await Product.create(
            business_id=business_id,
            name=name.strip(),
            price=Decimal(str(price)),
            inventory_item_id=inventory_item_id,
            using_db=conn
        )
        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action="create",
            entity="product",
            entity_id=product.id,
            metadata={"name": product.name, "price": str(product.price)},
            conn=conn
        )

    return product


async def _get_product(product_id: UUID, business_id: UUID, conn=None) -> Product:
    product = await Product.get_or_none(
        id=product_id, business_id=business_id, deleted_at__isnull=True
    ).using_db(conn)
    if product is None:
        raise NotFound(f"Product {product_id} not found in business {business_id}.")
    return product


@translate_connectivity
async def set_recipe_ingredient(
    business_id: UUID,
    actor_user_id: str,
    product_id: UUID,
    inventory_item_id: UUID,
    quantity: Union[Decimal, int, str],
) -> ProductRecipe:
    """
    Adds an ingredient to a product's recipe, or changes its per-unit quantity
    when the item is already part of it. Once a product has a recipe, sales
    deduct the recipe instead of the product's single linked item.
    """
    try:
        quantity = normalize_delta(quantity)
    except InvalidMovement as exc:
        raise InvalidRequest(f"Invalid recipe quantity {quantity}.") from exc
    if quantity <= 0:
        raise InvalidRequest("Recipe quantity must be positive.")

    await require_permission(business_id, actor_user_id, "recipe:edit")

    async with in_transaction() as conn:
        await _get_product(product_id, business_id, conn)
        item_exists = await InventoryItem.filter(
            id=inventory_item_id, business_id=business_id, deleted_at__isnull=True
        ).using_db(conn).exists()
        if not item_exists:
            raise NotFound(f"Inventory item {inventory_item_id} not found in business {business_id}.")

        line = await ProductRecipe.filter(
            product_id=product_id, inventory_item_id=inventory_item_id
        ).select_for_update().using_db(conn).first()
        if line is None:
            line = await ProductRecipe.create(
                business_id=business_id,
                product_id=product_id,
                inventory_item_id=inventory_item_id,
                quantity=quantity,
                using_db=conn
            )
        else:
            line.quantity = quantity
            await line.save(update_fields=['quantity'], using_db=conn)

        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action="recipe.set",
            entity="product",
            entity_id=product_id,
            metadata={"inventory_item_id": str(inventory_item_id), "quantity": str(quantity)},
            conn=conn
        )

    return line


@translate_connectivity
async def remove_recipe_ingredient(
    business_id: UUID, actor_user_id: str, product_id: UUID, inventory_item_id: UUID
) -> None:
    await require_permission(business_id, actor_user_id, "recipe:edit")

    async with in_transaction() as conn:
        deleted = await ProductRecipe.filter(
            business_id=business_id, product_id=product_id, inventory_item_id=inventory_item_id
        ).using_db(conn).delete()
        if not deleted:
            raise NotFound(f"Item {inventory_item_id} is not in the recipe of product {product_id}.")

        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action="recipe.remove",
            entity="product",
            entity_id=product_id,
            metadata={"inventory_item_id": str(inventory_item_id)},
            conn=conn
        )


@translate_connectivity
async def get_product_recipe(business_id: UUID, product_id: UUID) -> List[ProductRecipe]:
    await _get_product(product_id, business_id)
    return await ProductRecipe.filter(product_id=product_id).prefetch_related('inventory_item')
