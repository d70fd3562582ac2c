# blueprints/catalog/routes.py
from __future__ import annotations
import logging

from flask import Blueprint, abort, request, url_for

from blueprints.auth.routes import admin_required
from blueprints.core.http import apply_patch, created, dump, error, ok
from extensions import db
from models import Category, MenuItem, Order, OrderItem, PickupLocation
from .schemas import (
    CategoryIn, CategoryOut, CategoryPatch,
    LocationIn, LocationOut, LocationPatch,
    MenuItemIn, MenuItemOut, MenuItemPatch,
)

log = logging.getLogger(__name__)

api_bp = Blueprint("catalog_api", __name__)

CATEGORY_FIELDS = ["id", "name", "sort_order", "is_active"]
ITEM_FIELDS = ["id", "category_id", "name", "description", "price", "image", "sort_order", "is_active"]
LOCATION_FIELDS = ["id", "name", "address", "sort_order", "is_active"]

# ----------------------- Helpers -----------------------
def _category_tree(categories, *, only_active: bool) -> list[dict]:
    out = []
    for c in categories:
        cd = dump(CategoryOut, c, CATEGORY_FIELDS)
        items = [i for i in c.items if i.is_active or not only_active]
        cd["items"] = [dump(MenuItemOut, i, ITEM_FIELDS) for i in items]
        out.append(cd)
    return out

# ----------------------- Public -----------------------
@api_bp.get("/menu")
def api_menu():
    cats = (Category.query.filter_by(is_active=True)
            .order_by(Category.sort_order.asc(), Category.id.asc()).all())
    return ok({"categories": _category_tree(cats, only_active=True)})

@api_bp.get("/locations")
def api_locations():
    rows = (PickupLocation.query.filter_by(is_active=True)
            .order_by(PickupLocation.sort_order.asc(), PickupLocation.id.asc()).all())
    return ok({"locations": [dump(LocationOut, r, LOCATION_FIELDS) for r in rows]})

# ----------------------- Admin: menu -----------------------
@api_bp.get("/admin/menu")
@admin_required
def api_admin_menu():
    cats = Category.query.order_by(Category.sort_order.asc(), Category.id.asc()).all()
    return ok({"categories": _category_tree(cats, only_active=False)})

@api_bp.post("/admin/menu/categories")
@admin_required
def api_category_create():
    parsed = CategoryIn.model_validate(request.get_json(silent=True) or {})
    c = Category(name=parsed.name.strip(), sort_order=parsed.sort_order, is_active=parsed.is_active)
    db.session.add(c)
    db.session.commit()
    log.info("category %s created", c.id, extra={"event": "category_created"})
    return created(url_for("catalog_api.api_admin_menu"), {"category": dump(CategoryOut, c, CATEGORY_FIELDS)})

@api_bp.patch("/admin/menu/categories/<int:id>")
@admin_required
def api_category_update(id: int):
    patch = CategoryPatch.model_validate(request.get_json(silent=True) or {})
    c = db.session.get(Category, id) or abort(404)
    apply_patch(c, patch)
    db.session.commit()
    return ok({"category": dump(CategoryOut, c, CATEGORY_FIELDS)})

@api_bp.delete("/admin/menu/categories/<int:id>")
@admin_required
def api_category_delete(id: int):
    c = db.session.get(Category, id) or abort(404)
    if MenuItem.query.filter_by(category_id=c.id).first():
        return error("category_not_empty", 409)
    db.session.delete(c)
    db.session.commit()
    return "", 204

@api_bp.post("/admin/menu/items")
@admin_required
def api_item_create():
    parsed = MenuItemIn.model_validate(request.get_json(silent=True) or {})
    if not db.session.get(Category, parsed.category_id):
        return error("category_not_found", 400, field="category_id")
    item = MenuItem(
        category_id=parsed.category_id,
        name=parsed.name.strip(),
        description=parsed.description,
        price=parsed.price,
        image=parsed.image,
        sort_order=parsed.sort_order,
        is_active=parsed.is_active,
    )
    db.session.add(item)
    db.session.commit()
    log.info("menu item %s created", item.id, extra={"event": "menu_item_created"})
    return created(url_for("catalog_api.api_admin_menu"), {"item": dump(MenuItemOut, item, ITEM_FIELDS)})

@api_bp.patch("/admin/menu/items/<int:id>")
@admin_required
def api_item_update(id: int):
    patch = MenuItemPatch.model_validate(request.get_json(silent=True) or {})
    item = db.session.get(MenuItem, id) or abort(404)
    if patch.category_id is not None and not db.session.get(Category, patch.category_id):
        return error("category_not_found", 400, field="category_id")
    apply_patch(item, patch)
    db.session.commit()
    return ok({"item": dump(MenuItemOut, item, ITEM_FIELDS)})

@api_bp.delete("/admin/menu/items/<int:id>")
@admin_required
def api_item_delete(id: int):
    item = db.session.get(MenuItem, id) or abort(404)
    # позиции из истории заказов не удаляем, их можно только скрыть
    if OrderItem.query.filter_by(menu_item_id=item.id).first():
        return error("item_has_orders", 409, detail="deactivate the item instead")
    db.session.delete(item)
    db.session.commit()
    return "", 204

# ----------------------- Admin: locations -----------------------
@api_bp.get("/admin/locations")
@admin_required
def api_admin_locations():
    rows = PickupLocation.query.order_by(PickupLocation.sort_order.asc(), PickupLocation.id.asc()).all()
    return ok({"locations": [dump(LocationOut, r, LOCATION_FIELDS) for r in rows]})

@api_bp.post("/admin/locations")
@admin_required
def api_location_create():
    parsed = LocationIn.model_validate(request.get_json(silent=True) or {})
    loc = PickupLocation(name=parsed.name.strip(), address=parsed.address,
                         sort_order=parsed.sort_order, is_active=parsed.is_active)
    db.session.add(loc)
    db.session.commit()
    return created(url_for("catalog_api.api_admin_locations"), {"location": dump(LocationOut, loc, LOCATION_FIELDS)})

@api_bp.patch("/admin/locations/<int:id>")
@admin_required
def api_location_update(id: int):
    patch = LocationPatch.model_validate(request.get_json(silent=True) or {})
    loc = db.session.get(PickupLocation, id) or abort(404)
    apply_patch(loc, patch)
    db.session.commit()
    return ok({"location": dump(LocationOut, loc, LOCATION_FIELDS)})

@api_bp.delete("/admin/locations/<int:id>")
@admin_required
def api_location_delete(id: int):
    loc = db.session.get(PickupLocation, id) or abort(404)
    if Order.query.filter_by(pickup_location_id=loc.id).first():
        return error("location_has_orders", 409, detail="deactivate the location instead")
    db.session.delete(loc)
    db.session.commit()
    return "", 204
