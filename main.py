import asyncio
import json
import os
import sys

import httpx

from config import load_config
from session import AppSession
from utils.logger import setup_logging, log_info, log_error
from menus.main_menu import main_menu
from menus.auth_menu import connect_spotify, logout, paste_redirect_url, spotify_setup_help
from menus.poster_menu import poster_menu
from menus.config_menu import config_menu


async def run_app(config: dict) -> None:
    async with httpx.AsyncClient(timeout=float(config.get("http_timeout") or 30)) as http:
        session = AppSession.create(config, http)

        while True:
            choice = await main_menu(session.auth.is_authenticated())

            if choice == "Connect with Spotify":
                await connect_spotify(session)

            elif choice == "Complete login (paste redirect URL)":
                await paste_redirect_url(session)

            elif choice == "Spotify setup help":
                spotify_setup_help(session.config)

            elif choice == "Poster Menu":
                await poster_menu(session)

            elif choice == "Logout":
                logout(session)

            elif choice == "Config Menu":
                await config_menu(session.config)

            elif choice == "Exit":
                log_info("Exiting program...")
                break

            else:
                log_error("Invalid choice.")


if __name__ == "__main__":
    setup_logging()

    try:
        config = load_config()
    except FileNotFoundError as e:
        log_error(f"Config file not found: {e}")
        log_error("Please create config.json with required settings.")
        sys.exit(1)
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        sys.exit(1)

    setup_logging(config.get("log_level") or "INFO", config.get("log_file") or None)
    os.makedirs(config["output_dir"], exist_ok=True)

    try:
        asyncio.run(run_app(config))
    except KeyboardInterrupt:
        log_info("Interrupted.")
