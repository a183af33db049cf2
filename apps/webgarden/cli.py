#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""WebGarden CLI: serve the API, manage users, run the scheduled tick.

Usage:
  python3 -m apps.webgarden.cli serve --host 0.0.0.0 --port 8000
  python3 -m apps.webgarden.cli user add alice@example.com
  python3 -m apps.webgarden.cli show alice@example.com
  python3 -m apps.webgarden.cli tick
  python3 -m apps.webgarden.cli leaderboard --limit 20
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from core.garden.catalog import get_plant_type
from core.garden.errors import GardenError
from core.garden.models import GRID_COLS, GRID_ROWS, GardenState, cell_id

from .service import GardenService
from .settings import DEFAULT_CONFIG_PATH, GardenSettings, resolve_settings
from .store import GardenStore

console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _add_common_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to conf/settings.ini")
    p.add_argument("--db", default=None, help="SQLite garden database path")
    p.add_argument("--log-level", default="info", choices=["critical", "error", "warning", "info", "debug"])


def _service(settings: GardenSettings) -> GardenService:
    return GardenService(GardenStore(settings.db_path), timing=settings.timing)


def _cell_glyph(state: GardenState, row: int, col: int) -> str:
    cell = state.find_cell(cell_id(row, col))
    if cell is None or cell.plant is None:
        return "[dim]·[/dim]"
    ptype = get_plant_type(cell.plant.type)
    icon = ptype.icon if ptype else "?"
    water_style = "blue" if cell.water_level > 40 else ("yellow" if cell.water_level > 20 else "red")
    return f"{icon} [{water_style}]{cell.plant.growth_progress:.0f}%[/{water_style}]"


def cmd_serve(settings: GardenSettings, args: argparse.Namespace) -> int:
    import uvicorn  # type: ignore

    from .app import create_app_from_settings

    app = create_app_from_settings(settings)
    console.print(f"WebGarden: http://{settings.host}:{settings.port}{settings.root_path}/docs")
    console.print(f"Database: {settings.db_path}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=args.log_level,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    return 0


def cmd_user(settings: GardenSettings, args: argparse.Namespace) -> int:
    store = GardenStore(settings.db_path)
    if args.user_action == "add":
        row = store.add_user(args.email)
        console.print(f"[green]user[/green] {row['email']}  id={row['id']}")
        console.print(f"token: [bold]{row['api_token']}[/bold]")
        return 0
    user = store.find_user_by_email(args.email)
    if user is None:
        console.print(f"[red]Unknown user: {args.email}[/red]")
        return 2
    console.print(f"token: [bold]{store.rotate_token(user['id'])}[/bold]")
    return 0


def cmd_show(settings: GardenSettings, args: argparse.Namespace) -> int:
    svc = _service(settings)
    user = svc.store.find_user_by_email(args.email)
    if user is None:
        console.print(f"[red]Unknown user: {args.email}[/red]")
        return 2
    state, _ = svc.get_garden(user["id"])

    grid = Table(title=f"{user['email']}  weather={state.weather}", box=box.SIMPLE_HEAVY, show_header=False)
    for _ in range(GRID_COLS):
        grid.add_column(justify="center")
    for r in range(GRID_ROWS):
        grid.add_row(*[_cell_glyph(state, r, c) for c in range(GRID_COLS)])
    console.print(grid)

    stats = state.stats
    console.print(
        f"points={stats.total_points} level={stats.level} planted={stats.plants_planted} "
        f"grown={stats.plants_grown}  inventory={dict(state.inventory)}"
    )
    summary = state.summary()
    console.print(
        f"active={summary['activePlants']} thirsty={summary['thirstyPlants']} "
        f"ready={summary['readyToHarvest']} health={summary['overallHealth']}%"
    )
    return 0


def cmd_tick(settings: GardenSettings, args: argparse.Namespace) -> int:
    count = _service(settings).tick_all()
    logger.info("ticked %d gardens", count)
    return 0


def cmd_leaderboard(settings: GardenSettings, args: argparse.Namespace) -> int:
    rows = GardenStore(settings.db_path).leaderboard(int(args.limit or settings.leaderboard_default_limit))
    table = Table(title="Garden Leaderboard", border_style="green")
    table.add_column("#", justify="right")
    table.add_column("Email", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("Grown", justify="right")
    for row in rows:
        table.add_row(str(row["rank"]), row["email"], str(row["points"]), str(row["level"]), str(row["plantsGrown"]))
    console.print(table)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="WebGarden (virtual garden) service")
    sub = parser.add_subparsers(dest="action", required=True)

    p_serve = sub.add_parser("serve", help="Run the HTTP API (uvicorn)")
    _add_common_flags(p_serve)
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    p_serve.add_argument("--root-path", default=None, help="Reverse proxy mount path, e.g. /garden")
    p_serve.add_argument("--cors-allow-origin", action="append", default=[], help="CORS allow origin (repeatable)")

    p_user = sub.add_parser("user", help="Manage users and API tokens")
    _add_common_flags(p_user)
    p_user.add_argument("user_action", choices=["add", "token"])
    p_user.add_argument("email")

    p_show = sub.add_parser("show", help="Print a user's garden")
    _add_common_flags(p_show)
    p_show.add_argument("email")

    p_tick = sub.add_parser("tick", help="Advance decay + weather for every garden")
    _add_common_flags(p_tick)

    p_lb = sub.add_parser("leaderboard", help="Show the top gardens")
    _add_common_flags(p_lb)
    p_lb.add_argument("--limit", type=int, default=None)

    args = parser.parse_args(list(argv) if argv is not None else None)
    _setup_logging(args.log_level)

    settings = resolve_settings(
        config_path=Path(args.config),
        db_path=args.db,
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        root_path=getattr(args, "root_path", None),
        cors_allow_origins=getattr(args, "cors_allow_origin", None),
    )

    handlers = {
        "serve": cmd_serve,
        "user": cmd_user,
        "show": cmd_show,
        "tick": cmd_tick,
        "leaderboard": cmd_leaderboard,
    }
    try:
        return handlers[args.action](settings, args)
    except GardenError as exc:
        console.print(f"[red]{exc.message}[/red]")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
