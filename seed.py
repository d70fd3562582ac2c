"""
Идемпотентный seed-скрипт.
Запуск:
  python seed.py --reset         # дропнуть и пересоздать БД + демо-меню + admin/admin123
  python seed.py --ensure-admin  # создать только пользователя admin/admin123 (без сидов)
  python seed.py                 # мягкое наполнение недостающих данных (idempotent)
"""
from decimal import Decimal
import argparse
from sqlalchemy import func

from app import create_app
from extensions import db
from models import Category, MenuItem, PickupLocation, Role, TimeSlotConfig, User

MENU = {
    ("Hot Coffee", 1): [
        ("Espresso", "Strong and bold single shot", "99"),
        ("Americano", "Espresso with hot water", "129"),
        ("Cappuccino", "Espresso with steamed milk foam", "149"),
        ("Latte", "Espresso with steamed milk", "159"),
        ("Mocha", "Espresso with chocolate and milk", "179"),
        ("Macchiato", "Espresso with a dash of milk", "139"),
    ],
    ("Cold Coffee", 2): [
        ("Iced Americano", "Chilled espresso with cold water", "149"),
        ("Iced Latte", "Espresso with cold milk over ice", "169"),
        ("Cold Brew", "Slow-steeped for 20 hours", "179"),
        ("Frappuccino", "Blended iced coffee drink", "199"),
        ("Iced Mocha", "Chocolate espresso over ice", "189"),
    ],
    ("Specials", 3): [
        ("Caramel Macchiato", "Vanilla, espresso, caramel drizzle", "219"),
        ("Hazelnut Latte", "Rich hazelnut flavored latte", "209"),
        ("Vanilla Bean Frappuccino", "Creamy vanilla blended drink", "229"),
    ],
}

LOCATIONS = [
    ("Main Counter", "Ground Floor", 1),
    ("Drive Through", "Parking Area", 2),
    ("Express Counter", "Near Exit", 3),
]

def get_or_create(model, defaults=None, **by):
    """Идемпотентное создание по уникальным ключам."""
    inst = db.session.query(model).filter_by(**by).first()
    if inst:
        return inst, False
    data = dict(defaults or {})
    data.update(by)
    inst = model(**data)
    db.session.add(inst)
    db.session.flush()
    return inst, True

def seed_menu() -> int:
    created = 0
    for (cat_name, cat_order), items in MENU.items():
        cat, _ = get_or_create(Category, name=cat_name, defaults=dict(sort_order=cat_order))
        for idx, (name, desc, price) in enumerate(items, start=1):
            _, was_new = get_or_create(
                MenuItem, category_id=cat.id, name=name,
                defaults=dict(description=desc, price=Decimal(price), sort_order=idx),
            )
            created += int(was_new)
    db.session.commit()
    return created

def seed_locations() -> None:
    for name, address, order in LOCATIONS:
        get_or_create(PickupLocation, name=name, defaults=dict(address=address, sort_order=order))
    db.session.commit()

def seed_timeslot_config() -> None:
    if not TimeSlotConfig.query.first():
        db.session.add(TimeSlotConfig(start_time="09:00", end_time="22:00", slot_duration=15, max_orders_per_slot=5))
        db.session.commit()

def ensure_admin() -> bool:
    exists = db.session.query(User).filter(func.lower(User.username) == "admin").first()
    if exists:
        return False
    u = User(username="admin", role=Role.ADMIN.value)
    u.set_password("admin123")
    db.session.add(u)
    db.session.commit()
    return True

def seed_all() -> None:
    seed_menu()
    seed_locations()
    seed_timeslot_config()
    ensure_admin()

def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="drop + create + full seed (demo)")
    parser.add_argument("--ensure-admin", action="store_true", help="create only admin/admin123")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
            seed_all()
            print("[seed] reset+seed complete")
            return

        if args.ensure_admin:
            created = ensure_admin()
            print("Admin created." if created else "Admin already exists.")
            return

        # режим по умолчанию: мягкое наполнение недостающих данных
        db.create_all()
        seed_all()
        print("[seed] soft seed complete")

if __name__ == "__main__":
    main()
