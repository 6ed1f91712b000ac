#!/usr/bin/env python3
"""Emit deterministic SQL that creates (or promotes) a Jobly admin user."""

from __future__ import annotations

import argparse

from passlib.context import CryptContext


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(
    *,
    username: str,
    password_hash: str,
    first_name: str,
    last_name: str,
    email: str,
) -> str:
    return f"""-- Jobly admin bootstrap SQL
-- Run this in a privileged session against the Jobly database.

insert into users (username, password, first_name, last_name, email, is_admin)
values ({_quote_sql(username)}, {_quote_sql(password_hash)}, {_quote_sql(first_name)}, {_quote_sql(last_name)}, {_quote_sql(email)}, true)
on conflict (username)
do update set is_admin = true;
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to bootstrap a Jobly admin user.")
    parser.add_argument("--username", required=True, help="Username of the admin account")
    parser.add_argument("--password", required=True, help="Plain password; only its bcrypt hash is emitted")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    parser.add_argument("--email", required=True)
    parser.add_argument("--work-factor", type=int, default=12, help="bcrypt rounds")
    args = parser.parse_args()

    context = CryptContext(schemes=["bcrypt"], deprecated="auto")
    password_hash = context.handler("bcrypt").using(rounds=args.work_factor).hash(args.password)

    print(
        render_sql(
            username=args.username,
            password_hash=password_hash,
            first_name=args.first_name,
            last_name=args.last_name,
            email=args.email,
        )
    )


if __name__ == "__main__":
    main()
