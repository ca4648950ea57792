import questionary

from spotify_api.auth import check_spotify_credentials, spotify_app_setup_instructions
from utils.logger import log_error, log_info, log_success, log_warning


def spotify_setup_help(config: dict) -> None:
    creds = check_spotify_credentials(config)
    log_info("\n" + "=" * 72)
    log_info("SPOTIFY WEB API SETUP")
    log_info("=" * 72)
    log_info(spotify_app_setup_instructions(redirect_uri=creds.get("redirect_uri") or ""))
    log_info("Current config status:")
    log_info(f"- spotify_client_id: {'SET' if creds.get('client_id') else 'NOT SET'}")
    log_info(f"- spotify_redirect_uri: {creds.get('redirect_uri') or ''}")
    log_info("")
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
    else:
        log_info(creds.get("message") or "Spotify credentials look OK.")
    log_info("=" * 72 + "\n")


async def connect_spotify(session) -> None:
    """Start a PKCE login, then ask for the redirect URL."""
    creds = check_spotify_credentials(session.config)
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
        spotify_setup_help(session.config)
        return

    session.auth.begin_login()
    await paste_redirect_url(session)


async def paste_redirect_url(session) -> None:
    pasted = await questionary.text(
        "Paste the full redirect URL (preferred) OR just the code=... value:"
    ).ask_async()
    pasted = (pasted or "").strip()
    if not pasted:
        log_warning("No redirect URL / code provided. Cancelling auth.")
        return

    result = await session.callbacks.handle(pasted)

    if result.status == "logged_in":
        log_success(result.message)
    elif result.status == "already_processed":
        log_info(result.message)
    elif result.status == "missing_verifier":
        log_warning(result.message)
        restart = await questionary.confirm("Start a new Spotify login now?", default=True).ask_async()
        if restart:
            await connect_spotify(session)
    else:
        log_error(result.message)


def logout(session) -> None:
    session.auth.logout()
    session.forget_track()
    log_success("Logged out.")
