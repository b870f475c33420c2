from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from flask import request, url_for

from app.rtims.auth import current_session


@dataclass(frozen=True)
class NavItem:
    endpoint: str
    label: str


NAV_ITEMS: tuple[NavItem, ...] = (
    NavItem("routes.index", "Accueil"),
    NavItem("routes.services", "Services"),
    NavItem("routes.expertise", "Expertise"),
    NavItem("routes.contact", "Contact"),
    NavItem("portal.index", "Espace Employé"),
)

CONNECTED_SUFFIX = " (Connecté)"


def menu_is_open() -> bool:
    return (request.args.get("menu") or "").strip() == "1"


def menu_toggle_url() -> str:
    """Current page with the mobile menu flag inverted."""
    args = request.args.to_dict()
    if menu_is_open():
        args.pop("menu", None)
    else:
        args["menu"] = "1"
    query = urlencode(args)
    return request.path + (f"?{query}" if query else "")


def nav_entries() -> list[dict]:
    connected = current_session() is not None
    entries = []
    for item in NAV_ITEMS:
        label = item.label
        if item.endpoint == "portal.index" and connected:
            label += CONNECTED_SUFFIX
        entries.append(
            {
                "url": url_for(item.endpoint),
                "label": label,
                "active": request.endpoint == item.endpoint,
            }
        )
    return entries


def inject_navigation() -> dict:
    return {
        "nav_items": nav_entries(),
        "menu_open": menu_is_open(),
        "menu_toggle_url": menu_toggle_url(),
    }
