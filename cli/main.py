"""
CLI интерфейс для Agent Sentinel.

Работает поверх HTTP API, использует Rich для вывода.
Идентичность вызывающего: --as или переменная окружения SENTINEL_CALLER.
"""

import os
from typing import Optional

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
import typer

from sentinel.core.types import WEI_PER_XRP

app = typer.Typer(
    name="sentinel",
    help="Agent Sentinel CLI — заявки на аудит, эскроу и реестр отчётов"
)
admin_app = typer.Typer(help="Администрирование очереди и реестра (только владелец)")
app.add_typer(admin_app, name="admin")

console = Console()

BACKEND_URL = os.getenv("SENTINEL_BACKEND_URL", "http://localhost:8000")

STATUS_STYLE = {
    "pending": "yellow",
    "in_progress": "cyan",
    "completed": "green",
    "refunded": "magenta",
}


def _caller(caller: Optional[str]) -> str:
    identity = caller or os.getenv("SENTINEL_CALLER", "")
    if not identity:
        console.print("[red]❌ Укажите --as <address> или SENTINEL_CALLER[/]")
        raise typer.Exit(1)
    return identity


def _call(method: str, path: str, caller: Optional[str] = None, **kwargs) -> dict:
    """Выполнить запрос; ошибки API печатаются с именем ошибки."""
    headers = {"X-Caller": caller} if caller else {}
    try:
        response = httpx.request(
            method, f"{BACKEND_URL}{path}", headers=headers, timeout=30.0, **kwargs
        )
    except httpx.HTTPError as e:
        console.print(f"[red]❌ Backend недоступен: {e}[/]")
        raise typer.Exit(1)

    if response.status_code >= 400:
        try:
            data = response.json()
            console.print(f"[red]{data.get('error', 'Error')}: {data.get('message', data.get('detail'))}[/]")
        except ValueError:
            console.print(f"[red]Ошибка {response.status_code}: {response.text}[/]")
        raise typer.Exit(1)
    return response.json()


def _xrp(amount: int) -> str:
    return f"{amount / WEI_PER_XRP:g} XRP"


# ==================== Заявки ====================

@app.command()
def submit(
    target: str,
    deposit: int = typer.Option(..., help="Депозит в wei"),
    caller: Optional[str] = typer.Option(None, "--as", help="Адрес заказчика"),
):
    """📝 Создать заявку на аудит."""
    data = _call(
        "POST", "/requests", _caller(caller),
        json={"target_address": target, "deposit_amount": deposit},
    )
    console.print(f"✅ Заявка #{data['request_id']} создана ({_xrp(deposit)} в эскроу)")


@app.command()
def show(request_id: int):
    """🔍 Показать заявку."""
    data = _call("GET", f"/requests/{request_id}")
    style = STATUS_STYLE.get(data["status"], "white")
    body = (
        f"Заказчик: {data['requester']}\n"
        f"Цель: {data['target_address']}\n"
        f"Депозит: {_xrp(data['payment'])}\n"
        f"Статус: [{style}]{data['status']}[/]\n"
        f"Создана: {data['requested_at']}"
    )
    if data["status"] == "completed":
        body += f"\nЗавершена: {data['completed_at']}\nОтчёт: #{data['report_id']}"
    console.print(Panel(body, title=f"Заявка #{request_id}"))


@app.command()
def pending():
    """⏳ Заявки, ожидающие аудитора."""
    ids = _call("GET", "/requests/pending")["request_ids"]
    if not ids:
        console.print("[dim]Нет заявок в ожидании[/]")
        return

    table = Table(title="⏳ Pending")
    table.add_column("ID", style="cyan")
    table.add_column("Заказчик")
    table.add_column("Цель")
    table.add_column("Депозит", style="green")
    for request_id in ids:
        data = _call("GET", f"/requests/{request_id}")
        table.add_row(str(request_id), data["requester"], data["target_address"], _xrp(data["payment"]))
    console.print(table)


@app.command()
def mine(caller: Optional[str] = typer.Option(None, "--as", help="Адрес заказчика")):
    """📋 Мои заявки."""
    identity = _caller(caller)
    ids = _call("GET", f"/requests/by-requester/{identity}")["request_ids"]
    console.print(f"Заявки {identity}: {', '.join(map(str, ids)) or '—'}")


@app.command()
def start(request_id: int, caller: Optional[str] = typer.Option(None, "--as")):
    """🛠 Взять заявку в работу (аудитор)."""
    _call("POST", f"/requests/{request_id}/start", _caller(caller))
    console.print(f"✅ Заявка #{request_id} в работе")


@app.command()
def complete(
    request_id: int,
    report_id: int,
    caller: Optional[str] = typer.Option(None, "--as"),
):
    """🏁 Завершить заявку с id отчёта из реестра (аудитор)."""
    _call("POST", f"/requests/{request_id}/complete", _caller(caller), json={"report_id": report_id})
    console.print(f"✅ Заявка #{request_id} завершена, отчёт #{report_id}")


@app.command()
def refund(request_id: int, caller: Optional[str] = typer.Option(None, "--as")):
    """💸 Вернуть депозит после окна возврата."""
    data = _call("POST", f"/requests/{request_id}/refund", _caller(caller))
    console.print(f"✅ Возвращено {_xrp(data['amount'])} по заявке #{request_id}")


@app.command()
def balance():
    """💰 Баланс хранения очереди."""
    data = _call("GET", "/requests/balance")
    console.print(f"Баланс: {_xrp(data['balance'])}")
    console.print(f"К возврату по открытым заявкам: {_xrp(data['outstanding'])}")
    if data["balance"] < data["outstanding"]:
        console.print("[red]⚠️  Баланс меньше суммы возвращаемых депозитов![/]")


# ==================== Реестр ====================

@app.command()
def report(report_id: int):
    """📄 Показать отчёт из реестра."""
    data = _call("GET", f"/registry/audits/{report_id}")
    console.print(Panel(
        f"Цель: {data['target_address']}\n"
        f"Аудитор: {data['auditor']}\n"
        f"Оценка: [bold]{data['score']}[/]/100\n"
        f"Находки: 🔴 {data['critical']}  🟠 {data['high']}  🟡 {data['medium']}  🟢 {data['low']}\n"
        f"Отчёт: {data['report_uri']}\n\n"
        f"[dim]{data['disclaimer']}[/]",
        title=f"Отчёт #{report_id}",
    ))


@app.command()
def audit(
    target: str,
    score: int,
    report_uri: str,
    critical: int = typer.Option(0, "--critical"),
    high: int = typer.Option(0, "--high"),
    medium: int = typer.Option(0, "--medium"),
    low: int = typer.Option(0, "--low"),
    caller: Optional[str] = typer.Option(None, "--as", help="Адрес аудитора"),
):
    """📝 Опубликовать отчёт в реестре (только аудитор)."""
    data = _call(
        "POST", "/registry/audits", _caller(caller),
        json={
            "target_address": target,
            "score": score,
            "report_uri": report_uri,
            "critical": critical,
            "high": high,
            "medium": medium,
            "low": low,
        },
    )
    console.print(f"✅ Отчёт #{data['report_id']} для {target}")
    console.print(f"   sentinel complete <request_id> {data['report_id']}")


@app.command()
def auditors():
    """👥 Аудиторы реестра."""
    table = Table(title="👥 Аудиторы")
    table.add_column("Адрес", style="cyan")
    table.add_column("Имя")
    table.add_column("Активен")
    table.add_column("Отчёты", justify="right")
    for info in _call("GET", "/registry/auditors"):
        table.add_row(
            info["identity"],
            info["name"],
            "✅" if info["active"] else "❌",
            str(len(info["report_ids"])),
        )
    console.print(table)


@app.command()
def events(limit: int = 20, name: Optional[str] = None):
    """📜 Последние события."""
    params = {"limit": limit}
    if name:
        params["name"] = name
    data = _call("GET", "/events", params=params)

    table = Table(title="📜 События")
    table.add_column("Время", style="dim")
    table.add_column("Источник")
    table.add_column("Событие", style="cyan")
    table.add_column("Аргументы")
    for event in data["events"]:
        args = ", ".join(f"{k}={v}" for k, v in event["args"].items())
        table.add_row(str(event["timestamp"]), event["source"], event["name"], args)
    console.print(table)


@app.command()
def health():
    """🏥 Проверить статус системы."""
    try:
        response = httpx.get(f"{BACKEND_URL}/health", timeout=5)
        data = response.json()
    except Exception as e:
        console.print(f"🔴 Backend недоступен: {e}")
        raise typer.Exit(1)

    status = "🟢" if data.get("status") == "ok" else "🔴"
    console.print(f"{status} Backend: {data.get('status')}")
    console.print(f"   Owner: {data.get('owner', 'N/A')}")
    console.print(f"   Auditor: {data.get('auditor', 'N/A')}")
    for name, component in data.get("components", {}).items():
        console.print(f"   {name}: {component.get('status')}")


# ==================== Администрирование ====================

@admin_app.command("set-fee")
def set_fee(amount: int, caller: Optional[str] = typer.Option(None, "--as")):
    """Минимальная комиссия (wei)."""
    _call("PUT", "/admin/minimum-fee", _caller(caller), json={"amount": amount})
    console.print(f"✅ Минимальная комиссия: {_xrp(amount)}")


@admin_app.command("set-timeout")
def set_timeout(seconds: int, caller: Optional[str] = typer.Option(None, "--as")):
    """Окно возврата (секунды)."""
    _call("PUT", "/admin/refund-timeout", _caller(caller), json={"duration": seconds})
    console.print(f"✅ Окно возврата: {seconds} с")


@admin_app.command("set-auditor")
def set_auditor(identity: str, caller: Optional[str] = typer.Option(None, "--as")):
    _call("PUT", "/admin/auditor", _caller(caller), json={"identity": identity})
    console.print(f"✅ Аудитор: {identity}")


@admin_app.command("add-auditor")
def add_auditor(identity: str, name: str, caller: Optional[str] = typer.Option(None, "--as")):
    """Допустить аудитора в реестр."""
    _call("POST", "/registry/auditors", _caller(caller), json={"identity": identity, "name": name})
    console.print(f"✅ {name} ({identity}) может публиковать отчёты")


@admin_app.command("revoke-auditor")
def revoke_auditor(identity: str, caller: Optional[str] = typer.Option(None, "--as")):
    """Отозвать допуск аудитора. Отчёты остаются в реестре."""
    _call("DELETE", f"/registry/auditors/{identity}", _caller(caller))
    console.print(f"✅ Допуск {identity} отозван")


@admin_app.command("exempt")
def exempt(target: str, caller: Optional[str] = typer.Option(None, "--as")):
    """Бесплатный аудит для цели."""
    _call("POST", "/admin/fee-exemptions", _caller(caller), json={"identity": target})
    console.print(f"✅ {target} освобождён от комиссии")


@admin_app.command("withdraw")
def withdraw(
    to: str,
    caller: Optional[str] = typer.Option(None, "--as"),
    yes: bool = typer.Option(False, "--yes", help="Не спрашивать подтверждение"),
):
    """Вывести весь баланс хранения."""
    identity = _caller(caller)
    data = _call("GET", "/requests/balance")
    if data["outstanding"] > 0 and not yes:
        console.print(
            f"[yellow]⚠️  {_xrp(data['outstanding'])} ещё может быть возвращено заказчикам. "
            f"После вывода возвраты будут падать.[/]"
        )
        typer.confirm("Продолжить?", abort=True)
    result = _call("POST", "/admin/withdraw", identity, json={"identity": to})
    console.print(f"✅ Выведено {_xrp(result['amount'])} на {to}")


@admin_app.command("pause")
def pause(caller: Optional[str] = typer.Option(None, "--as")):
    _call("POST", "/admin/pause", _caller(caller))
    console.print("⏸  Приём заявок приостановлен")


@admin_app.command("unpause")
def unpause(caller: Optional[str] = typer.Option(None, "--as")):
    _call("POST", "/admin/unpause", _caller(caller))
    console.print("▶️  Приём заявок возобновлён")


if __name__ == "__main__":
    app()
