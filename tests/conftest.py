# Shared pytest fixtures
from __future__ import annotations
import pytest


def make_row(frame, model, variant, color, location, executive, **extra):
    row = {
        "Frame No": frame,
        "Model": model,
        "Variant": variant,
        "Colour": color,
        "Location": location,
        "Sales Executive Name": executive,
    }
    row.update(extra)
    return row


@pytest.fixture()
def stock_rows() -> list[dict]:
    return [
        make_row("ME4JF50", "Activa", "STD", "Red", "Showroom", "Ravi"),
        make_row("ME4JF51", "Activa", "DLX", "Black", "Showroom INVOICED", "Asha"),
        make_row("ME4JF52", "Activa", "DLX", "Blue", "Godown", "Asha"),
        make_row("ME4JF53", "Dio", "STD", "Grey", "Showroom", ""),
        make_row("ME4JF54", "Dio", "Sports", "Red", "Godown", "Ravi"),
        make_row("", "Dio", "Sports", "Amber", "Godown", "Kiran"),
        make_row("ME4JF56", "Shine", "Disc", "black", "invoiced - branch 2", "Kiran"),
    ]


@pytest.fixture()
def column_map():
    from stock_api.columns import resolve
    return resolve({
        "Frame No": "", "Model": "", "Variant": "", "Colour": "",
        "Location": "", "Sales Executive Name": "",
    })


@pytest.fixture()
def client():
    from stock_api import app as app_module
    app_module.app.config.update(TESTING=True)
    with app_module.app.test_client() as c:
        yield c
