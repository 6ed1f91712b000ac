from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from passlib.context import CryptContext

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "bootstrap_admin.py"


def _run_script(*args: str) -> str:
    completed = subprocess.run(
        [sys.executable, str(SCRIPT_PATH), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def test_bootstrap_script_emits_admin_upsert() -> None:
    output = _run_script(
        "--username",
        "root",
        "--password",
        "hunter22",
        "--email",
        "root@example.edu",
        "--work-factor",
        "4",
    )

    assert "insert into users (username, password, first_name, last_name, email, is_admin)" in output
    assert "values ('root', '$2b$04$" in output
    assert "'Admin', 'User', 'root@example.edu', true)" in output
    assert "do update set is_admin = true;" in output
    assert "hunter22" not in output

    password_hash = output.split("values ('root', '", 1)[1].split("'", 1)[0]
    assert CryptContext(schemes=["bcrypt"]).verify("hunter22", password_hash)


def test_bootstrap_script_escapes_quotes() -> None:
    output = _run_script(
        "--username",
        "o'brien",
        "--password",
        "hunter22",
        "--last-name",
        "O'Brien",
        "--email",
        "ob@example.edu",
        "--work-factor",
        "4",
    )

    assert "values ('o''brien', " in output
    assert "'O''Brien'" in output
