import questionary


async def main_menu(logged_in: bool) -> str:
    if logged_in:
        choices = ["Poster Menu", "Logout", "Config Menu", "Exit"]
    else:
        choices = [
            "Connect with Spotify",
            "Complete login (paste redirect URL)",
            "Spotify setup help",
            "Config Menu",
            "Exit",
        ]

    choice = await questionary.select(
        "🎵 Spotify Poster — What would you like to do?",
        choices=choices,
    ).ask_async()
    return choice or "Exit"
