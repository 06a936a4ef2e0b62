"""
Production floor: places every order at the lab station matching its status
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from labflow.schemas.production import FloorLayout, FloorResponse, OrderChip, StationView
from labflow.statuses import station_for, status_label

logger = logging.getLogger(__name__)

DEFAULT_LAYOUT = {
    "stations": [
        {"key": "espera", "title": "Espera"},
        {"key": "projeto", "title": "Projeto"},
        {"key": "fresadora", "title": "Fresadora"},
        {"key": "maquiagem", "title": "Maquiagem"},
        {"key": "vazado", "title": "Vazado"},
        {"key": "pureto", "title": "Pureto"},
        {"key": "saida", "title": "Saída"},
    ],
    "user_colors": {},
    "default_color": "gray",
}


def load_floor_layout(path: Optional[str]) -> FloorLayout:
    """Read the layout file, or the default layout when no file is configured or present"""
    if not path or not Path(path).is_file():
        return FloorLayout(**DEFAULT_LAYOUT)
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    return FloorLayout(**data)


def save_floor_layout(layout: FloorLayout, path: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(layout.dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info(f"Saved floor layout to {path}")


def build_floor(orders: Iterable, layout: FloorLayout) -> FloorResponse:
    """
    Group orders by station. ``orders`` must be in intake order (oldest first);
    each chip keeps its 1-based position in that queue.
    """
    chips = {station.key: [] for station in layout.stations}
    total = 0

    for position, order in enumerate(orders, start=1):
        total += 1
        username = order.assigned_username
        color = layout.user_colors.get(username.lower(), layout.default_color) if username else layout.default_color
        chips[station_for(order.status).value].append(OrderChip(
            position=position,
            order_id=order.id,
            order_number=order.order_number,
            patient_name=order.patient_name,
            status=order.status,
            status_label=status_label(order.status),
            assigned_username=username,
            color=color,
        ))

    stations = [
        StationView(key=station.key, title=station.title, count=len(chips[station.key]), orders=chips[station.key])
        for station in layout.stations
    ]
    return FloorResponse(stations=stations, total_orders=total)
