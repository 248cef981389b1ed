"""Initial PoliMarket catalogue stock, sellers and suppliers."""

from __future__ import annotations

from polimarket.domain.gateways import SupplierRecord
from polimarket.domain.model.stock import StockEntry

SEED_STOCK: tuple[tuple[str, str, int], ...] = (
    ("P001", "Arroz Diana Premium 500g", 150),
    ("P002", "Aceite Girasol 1L", 80),
    ("P003", "Leche Entera Alpina 1L", 120),
    ("P004", "Pan Tajado Bimbo 450g", 60),
    ("P005", "Coca Cola 2L", 200),
    ("P006", "Detergente Ariel 1kg", 90),
    ("P007", "Jabón Rey 300g", 180),
    ("P008", "Papel Higiénico Scott 4 rollos", 75),
    ("PROD001", "Laptop Dell Inspiron", 50),
    ("PROD002", "Mouse Inalámbrico", 200),
    ("PROD003", 'Monitor Samsung 24"', 75),
)


def seed_entries() -> list[StockEntry]:
    return [
        StockEntry(product_id=pid, product_name=name, quantity=qty)
        for pid, name, qty in SEED_STOCK
    ]


AUTHORIZED_SELLERS: tuple[str, ...] = ("V001", "V002", "V003", "V004", "V005", "DEMO")

SEED_SUPPLIERS: tuple[tuple[str, str, bool], ...] = (
    ("PROV001", "Distribuidora Nacional de Alimentos S.A.", True),
    ("PROV002", "Productos de Limpieza El Aseo Ltda", True),
    ("PROV003", "Tecnología y Equipos Industriales S.A.S", True),
    ("PROV004", "Textiles y Confecciones del Norte", True),
    ("PROV005", "Farmacéuticos Unidos de Colombia", True),
    ("PROV006", "Construcción y Materiales del Pacífico", True),
    ("PROV007", "Automotriz Central Ltda", False),
)


def seed_suppliers() -> list[SupplierRecord]:
    return [SupplierRecord(sid, name, active) for sid, name, active in SEED_SUPPLIERS]
