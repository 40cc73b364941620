# zusplus/web/templates.py
from pathlib import Path

from fastapi.templating import Jinja2Templates

# Basisverzeichnis: zusplus/web
BASE_DIR = Path(__file__).resolve().parent

TEMPLATES_DIR = BASE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def format_pln(value) -> str:
    """4890.4 -> '4 890 PLN'"""
    try:
        return f"{round(float(value)):,}".replace(",", " ") + " PLN"
    except (TypeError, ValueError):
        return "-"


templates.env.filters["pln"] = format_pln
