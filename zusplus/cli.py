"""
Admin-Verwaltung für den lokalen Identity-Provider.

Direkt gegen die Datenbank (DB_URL), ohne laufenden Server:

    python -m zusplus.cli create-admin admin@zusplus.pl 'geheim123'
    python -m zusplus.cli reset-mfa admin@zusplus.pl
    python -m zusplus.cli set-password admin@zusplus.pl 'neu12345'
"""
from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.console import Console
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from zusplus.core.config import get_settings
from zusplus.core.security import hash_password
from zusplus.db.database import init_models, make_engine, make_session_factory
from zusplus.repositories import mfa_repo, session_repo, user_repo

app = typer.Typer(help="ZUSPlus: Admin-Konten verwalten", no_args_is_help=True)

console = Console()

_MIN_PASSWORD_LENGTH = 8

# für Tests überschreibbar
_session_factory: Optional[sessionmaker[Session]] = None


def _sessions() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        engine = make_engine(get_settings().DB_URL)
        init_models(engine)
        _session_factory = make_session_factory(engine)
    return _session_factory


def _check_password(password: str) -> None:
    if len(password) < _MIN_PASSWORD_LENGTH:
        console.print(f"[red]Hasło musi mieć co najmniej {_MIN_PASSWORD_LENGTH} znaków[/red]")
        raise typer.Exit(code=1)


# =============================================================================
# Commands
# =============================================================================

@app.command(name="create-admin")
def create_admin(
    email: Annotated[str, typer.Argument(help="Email administratora")],
    password: Annotated[str, typer.Argument(help="Hasło (min. 8 znaków)")],
) -> None:
    """Legt ein Admin-Konto an (ohne 2FA; Einrichtung beim ersten Login)."""
    _check_password(password)

    with _sessions()() as db:
        if user_repo.get_by_email(db, email):
            console.print(f"[red]Użytkownik '{user_repo.normalize_email(email)}' już istnieje[/red]")
            raise typer.Exit(code=1)
        try:
            user = user_repo.create_user(db, email=email, password_hash=hash_password(password))
        except IntegrityError:
            console.print("[red]Nie udało się utworzyć użytkownika[/red]")
            raise typer.Exit(code=1)

    console.print(f"[green]Utworzono administratora[/green] {user.email} (id={user.id})")


@app.command(name="reset-mfa")
def reset_mfa(
    email: Annotated[str, typer.Argument(help="Email administratora")],
) -> None:
    """Löscht alle TOTP-Faktoren eines Kontos; beim nächsten Login neu einrichten."""
    with _sessions()() as db:
        user = user_repo.get_by_email(db, email)
        if not user:
            console.print(f"[red]Nie znaleziono użytkownika '{email}'[/red]")
            raise typer.Exit(code=1)
        removed = mfa_repo.delete_all_factors(db, user.id)
        session_repo.revoke_all_for_user(db, user.id)

    console.print(f"Usunięto czynniki 2FA: {removed}")


@app.command(name="set-password")
def set_password(
    email: Annotated[str, typer.Argument(help="Email administratora")],
    password: Annotated[str, typer.Argument(help="Nowe hasło (min. 8 znaków)")],
) -> None:
    _check_password(password)

    with _sessions()() as db:
        user = user_repo.get_by_email(db, email)
        if not user or not user_repo.update_password_hash(db, user.id, hash_password(password)):
            console.print(f"[red]Nie znaleziono użytkownika '{email}'[/red]")
            raise typer.Exit(code=1)

    console.print(f"[green]Hasło zmienione[/green] dla {user.email}")


if __name__ == "__main__":
    app()
