# cli.py
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, FloatPrompt, Prompt
from rich.table import Table

from sdk.pyhub import HubClient

console = Console()
c = HubClient(base_url=os.getenv("HUB_API_URL", "http://127.0.0.1:8085"))


# Global state for status messages and caching
status_message = "Ready"
category_cache: List[Dict[str, Any]] = []
city_cache = set()

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


def _price(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"R$ {value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


# ---------------------------
# Display helpers
# ---------------------------
def show_categories(categories: List[Dict[str, Any]]):
    if not categories:
        console.print("[italic yellow]No categories found[/italic yellow]")
        return
    table = Table(title="🏷️ Categories", box=box.ROUNDED, header_style="bold cyan", title_style="bold magenta")
    table.add_column("Slug", style="dim", width=20)
    table.add_column("Name", style="bold", width=30)
    table.add_column("Active", width=8)
    for cat in categories:
        table.add_row(cat.get("slug") or "-", cat.get("name", "N/A"), "yes" if cat.get("is_active", True) else "no")
    console.print(table)


def show_products(products: List[Dict[str, Any]], title: str = "📦 Products Catalog"):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return
    table = Table(title=title, box=box.ROUNDED, header_style="bold cyan", title_style="bold magenta", show_lines=True)
    table.add_column("Slug", style="dim", width=22)
    table.add_column("Name", style="bold", width=26)
    table.add_column("Price", justify="right", width=14)
    table.add_column("Promo", justify="right", width=14)
    table.add_column("Status", width=9)
    for p in products:
        status = p.get("status") or "-"
        style = "green" if status == "Ativo" else "yellow"
        table.add_row(
            p.get("slug") or "-",
            p.get("name", "N/A"),
            _price(p.get("real_price")),
            _price(p.get("promo_price")),
            f"[{style}]{status}[/{style}]",
        )
    console.print(table)


def show_product(product: Dict[str, Any]):
    lines = [f"[bold]{product.get('name')}[/bold]"]
    if product.get("subtitle"):
        lines.append(f"[dim]{product['subtitle']}[/dim]")
    lines.append(f"Price: {_price(product.get('real_price'))}")
    if product.get("promo_price") is not None:
        lines.append(f"Promo: [green]{_price(product['promo_price'])}[/green]"
                     f" ({product.get('discount_percentage') or 0:.0f}% off)")
    if product.get("description"):
        lines.append("")
        lines.append(product["description"])
    lines.append("")
    lines.append(f"Images: {len(product.get('images') or [])}  Main: {product.get('main_image_url') or '-'}")
    console.print(Panel("\n".join(lines), title=f"🛍️ {product.get('slug')}", border_style="cyan"))


def show_distributors(distributors: List[Dict[str, Any]], title: str = "🏪 Distributors"):
    if not distributors:
        console.print("[italic yellow]No distributors found[/italic yellow]")
        return
    table = Table(title=title, box=box.ROUNDED, header_style="bold yellow", title_style="bold yellow", show_lines=True)
    table.add_column("", width=3)
    table.add_column("Name", style="bold", width=24)
    table.add_column("City", width=20)
    table.add_column("Distance", justify="right", width=9)
    table.add_column("Plan", width=10)
    table.add_column("WhatsApp", width=28)
    for d in distributors:
        distance = d.get("distance") if d.get("show_distance") else "-"
        plan = (d.get("plan") or {}).get("name") or "-"
        city = ", ".join(x for x in (d.get("cidade"), d.get("estado")) if x) or "-"
        table.add_row(d.get("initials") or "", d.get("name", "N/A"), city, distance or "-", plan,
                      d.get("whatsapp_url") or "-")
    console.print(table)


def show_counts(counts: Dict[str, int]):
    keys = ("products", "distributors", "partners", "categories")
    grid = Table.grid(padding=(0, 4))
    for _ in keys:
        grid.add_column(justify="center")
    grid.add_row(*[f"[bold]{counts.get(k, 0)}[/bold]\n[dim]{k}[/dim]" for k in keys])
    console.print(Panel.fit(grid, title="📊 Dashboard", border_style="green"))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper with exception handling
# ---------------------------
def _error_text(e: Exception) -> str:
    if isinstance(e, requests.HTTPError) and e.response is not None:
        try:
            return f"HTTP {e.response.status_code}: {e.response.json().get('detail')}"
        except ValueError:
            return f"HTTP {e.response.status_code}: {e.response.text}"
    return str(e)


def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """Call fn with a spinner; print and remember the outcome, return None on failure."""
    global status_message
    try:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), transient=True) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)
        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except (requests.RequestException, ValueError) as e:
        status_message = f"Error: {_error_text(e)}"
        console.print(show_status(status_message, False))
        return None


# ---------------------------
# Autocompletion helpers
# ---------------------------
def get_category_completer():
    global category_cache
    if not category_cache:
        category_cache = try_api(c.list_categories) or []
    return WordCompleter([cat["slug"] for cat in category_cache if cat.get("slug")], ignore_case=True)


def get_city_completer():
    global city_cache
    if not city_cache:
        for d in try_api(c.list_distributors) or []:
            if d.get("cidade"):
                city_cache.add(d["cidade"])
    return WordCompleter(sorted(city_cache), ignore_case=True)


def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    logged = "[green]panel session[/green]" if c.token else "[dim]anonymous[/dim]"
    header.add_row("🗺️ Distributor Hub", "[bold blue]Catalog, locator and panel[/bold blue]", f"[dim]{now}[/dim] {logged}")
    return Panel(header, style="bold blue")


def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def choose_place():
    """Pick a location from an address search; returns (lat, lng) or None."""
    query = prompt_with_autocomplete("Address or city", completer=get_city_completer())
    places = try_api(c.search_addresses, query)
    if not places:
        console.print("[italic yellow]No address found[/italic yellow]")
        return None
    for i, place in enumerate(places, start=1):
        console.print(f"[bold cyan]{i}[/bold cyan] {place['display_name']}")
    idx = Prompt.ask("Choose", choices=[str(i) for i in range(1, len(places) + 1)], default="1")
    place = places[int(idx) - 1]
    return place["lat"], place["lng"]


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global status_message, category_cache, city_cache

    console.clear()
    console.print(create_header())

    while True:
        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=32)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=32)
        options = [
            ("1", "🏷️ List categories", "6", "🔐 Panel login"),
            ("2", "📦 Products of a category", "7", "📊 Dashboard counts"),
            ("3", "🛍️ Product details", "8", "🔍 Search panel products"),
            ("4", "📍 Nearby distributors", "9", "🏪 Panel distributors"),
            ("5", "🗺️ Geocode map view", "10", "🔄 Reset memory backend"),
            ("", "", "q", "👋 Quit"),
        ]
        for row in options:
            menu_table.add_row(*row)
        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option", completer=WordCompleter([str(i) for i in range(1, 11)] + ["q", "quit", "exit"])
        ).strip()

        if choice == "1":
            categories = try_api(c.list_categories, success_msg="Categories loaded")
            if categories is not None:
                category_cache = categories
                show_categories(categories)

        elif choice == "2":
            slug = prompt_with_autocomplete("Category slug", completer=get_category_completer())
            products = try_api(c.products_by_category, slug)
            if products is not None:
                show_products(products, title=f"📦 {slug}")

        elif choice == "3":
            slug = prompt_with_autocomplete("Product slug")
            product = try_api(c.get_product, slug)
            if product:
                show_product(product)
                category = next((cat["slug"] for cat in category_cache if cat["id"] == product.get("category_id")), None)
                if category:
                    related = try_api(c.related_products, slug, category)
                    if related:
                        show_products(related, title="🔗 Related products")

        elif choice == "4":
            coords = choose_place()
            if coords:
                radius = FloatPrompt.ask("Radius in km", default=50.0)
                found = try_api(c.nearby, coords[0], coords[1], radius,
                                success_msg=f"Distributors within {radius:.0f}km loaded")
                if found is not None:
                    show_distributors(found, title=f"📍 Within {radius:.0f}km")

        elif choice == "5":
            console.print("[dim]Addresses are geocoded one per second...[/dim]")
            view = try_api(c.map_view)
            if view:
                st = view["status"]
                console.print(Panel.fit(f"{st['succeeded']} of {st['total']} placed on the map", title="🗺️ Map"))
                for d in view["distributors"]:
                    console.print(f"  • {d['name']}: ({d['lat']:.5f}, {d['lng']:.5f})")

        elif choice == "6":
            email = Prompt.ask("Email")
            password = Prompt.ask("Password", password=True)
            out = try_api(c.login, email, password, success_msg=f"Logged in as {email}")
            if out:
                console.print(create_header())

        elif choice == "7":
            counts = try_api(c.counts)
            if counts:
                show_counts(counts)

        elif choice == "8":
            term = prompt_with_autocomplete("Search name or SKU")
            status = Prompt.ask("Status", choices=["", "Ativo", "Inativo"], default="")
            products = try_api(c.list_products, term, status or None)
            if products is not None:
                show_products(products)

        elif choice == "9":
            term = prompt_with_autocomplete("Search name or email")
            found = try_api(c.list_panel_distributors, term)
            if found is not None:
                show_distributors(found)

        elif choice == "10":
            if Confirm.ask("[red]This will clear all data. Continue?[/red]"):
                try_api(c.reset, success_msg="Memory backend reset")
                category_cache = []
                city_cache = set()
                c.set_token(None)

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Até logo! 👋[/bold green]", title="Goodbye"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


if __name__ == "__main__":
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
