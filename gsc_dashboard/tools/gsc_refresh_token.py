from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from google_auth_oauthlib.flow import InstalledAppFlow

SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Obtain the Search Console OAuth refresh token used by gsc-dashboard"
    )
    parser.add_argument(
        "--client-secret",
        default="",
        help="Path to OAuth client secret JSON (default: GSC_OAUTH_CLIENT_SECRET_PATH from .env)",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Env file updated with --write-env (default: .env)",
    )
    parser.add_argument(
        "--write-env",
        action="store_true",
        help="Write GSC_OAUTH_CLIENT_ID, GSC_OAUTH_CLIENT_SECRET and GSC_OAUTH_REFRESH_TOKEN into the env file",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Do not open browser automatically",
    )
    return parser.parse_args(argv)


def _quote_env(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def upsert_env(env_path: Path, values: dict[str, str]) -> None:
    lines: list[str] = []
    if env_path.exists():
        lines = env_path.read_text(encoding="utf-8").splitlines()

    pending = dict(values)
    updated: list[str] = []
    for line in lines:
        key = line.split("=", 1)[0].strip() if "=" in line else ""
        if key in pending:
            updated.append(f"{key}={_quote_env(pending.pop(key))}")
        else:
            updated.append(line)

    if pending:
        if updated and updated[-1].strip():
            updated.append("")
        for key, value in pending.items():
            updated.append(f"{key}={_quote_env(value)}")

    env_path.write_text("\n".join(updated) + "\n", encoding="utf-8")


def read_client_section(secret_path: Path) -> dict[str, str]:
    """Client id/secret from a downloaded OAuth client JSON ("installed" or "web")."""
    try:
        payload = json.loads(secret_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON in client secret file: {secret_path}") from exc

    if not isinstance(payload, dict):
        raise SystemExit(f"OAuth client JSON must be an object: {secret_path}")
    section = payload.get("installed") or payload.get("web") or payload
    if not isinstance(section, dict):
        raise SystemExit("OAuth client JSON 'installed'/'web' section must be an object.")
    client_id = str(section.get("client_id", "")).strip()
    client_secret = str(section.get("client_secret", "")).strip()
    if not (client_id and client_secret):
        raise SystemExit("OAuth client JSON is missing client_id/client_secret.")
    return {"client_id": client_id, "client_secret": client_secret}


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except Exception:
        pass

    args = _parse_args(argv)

    client_secret = args.client_secret.strip() or os.getenv(
        "GSC_OAUTH_CLIENT_SECRET_PATH", ""
    ).strip()
    if not client_secret:
        raise SystemExit(
            "Missing OAuth client secret path. Set GSC_OAUTH_CLIENT_SECRET_PATH or pass --client-secret."
        )

    secret_path = Path(client_secret)
    if not secret_path.exists():
        raise SystemExit(f"Client secret file not found: {client_secret}")
    client = read_client_section(secret_path)

    flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), SCOPES)
    creds = flow.run_local_server(
        port=0,
        access_type="offline",
        prompt="consent",
        open_browser=not args.no_browser,
    )

    refresh_token = (creds.refresh_token or "").strip()
    if not refresh_token:
        raise SystemExit(
            "No refresh token received. Revoke app access for this OAuth client and rerun command with consent."
        )

    print("GSC_OAUTH_REFRESH_TOKEN generated successfully.")

    if args.write_env:
        env_path = Path(args.env_file)
        upsert_env(
            env_path,
            {
                "GSC_OAUTH_CLIENT_ID": client["client_id"],
                "GSC_OAUTH_CLIENT_SECRET": client["client_secret"],
                "GSC_OAUTH_REFRESH_TOKEN": refresh_token,
            },
        )
        print(f"OAuth settings written to: {env_path}")
    else:
        print(f"GSC_OAUTH_REFRESH_TOKEN={refresh_token}")


if __name__ == "__main__":
    main()
