#!/usr/bin/env python3
"""
Arb Seeker Diagnostics.

Checks every external dependency the bot needs before it is left running.

Usage:
    python -m arbseeker.diagnose

Exit code 0 when every check passes, 1 otherwise.
"""

import asyncio
import sys

import httpx
from dotenv import load_dotenv

from arbseeker.engine.margin import arb_margin, implied_probability, profit_margin
from arbseeker.errors import AuthenticationError
from arbseeker.exchange.session import SessionManager, create_http_client
from arbseeker.storage.kv import MemoryStore
from arbseeker.utils.alerts import TelegramAlerter
from config.settings import Settings


def check_config(settings: Settings) -> bool:
    print("1️⃣ Checking configuration...")
    missing = settings.missing_required()
    if missing:
        for name in missing:
            print(f"   ❌ {name} is not set")
        return False
    print("   ✅ All required settings present")
    return True


async def check_telegram(settings: Settings) -> bool:
    print("2️⃣ Testing Telegram bot...")
    if not settings.telegram.bot_token:
        print("   ⏭️  Skipped (no bot token)")
        return False

    alerter = TelegramAlerter(settings.telegram.bot_token, settings.telegram.chat_id)
    try:
        data = await alerter.get_me()
        username = data.get("result", {}).get("username", "?")
        print(f"   ✅ Bot OK: @{username}")
        return True
    except httpx.HTTPError as e:
        print(f"   ❌ Error: {e}")
        return False
    finally:
        await alerter.close()


async def check_odds_api(settings: Settings) -> bool:
    print("3️⃣ Testing The Odds API...")
    if not settings.odds_api.api_key:
        print("   ⏭️  Skipped (no API key)")
        return False

    async with create_http_client(timeout=10.0) as client:
        try:
            response = await client.get(
                f"{settings.odds_api.base_url}/sports",
                params={"apiKey": settings.odds_api.api_key},
            )
        except httpx.HTTPError as e:
            print(f"   ❌ Error: {e}")
            return False

    if response.status_code != 200:
        print(f"   ❌ Failed: {response.status_code} {response.text[:100]}")
        return False

    remaining = response.headers.get("x-requests-remaining", "?")
    print(f"   ✅ OK - {len(response.json())} sports, {remaining} requests remaining")
    return True


async def check_betfair(settings: Settings) -> bool:
    print("4️⃣ Testing Betfair login...")
    if not (settings.betfair.app_key and settings.betfair.username and settings.betfair.password):
        print("   ⏭️  Skipped (missing Betfair credentials)")
        return False

    session = SessionManager(
        store=MemoryStore(),
        app_key=settings.betfair.app_key,
        username=settings.betfair.username,
        password=settings.betfair.password,
        login_url=settings.betfair.login_url,
    )
    try:
        token = await session.get_token()
        print(f"   ✅ Session token: {token[:8]}...")
        return True
    except AuthenticationError as e:
        print(f"   ❌ {e}")
        message = str(e)
        if "non-JSON" in message:
            print("   💡 Betfair returned HTML: check the app key and that the account is verified")
        elif "INVALID_USERNAME_OR_PASSWORD" in message:
            print("   💡 Use the API password, not the website password")
        return False
    finally:
        await session.close()


def check_math() -> bool:
    print("5️⃣ Checking margin math (back 2.10 / lay 2.05)...")
    back, lay = 2.10, 2.05
    gap = profit_margin(back, lay)
    implied = implied_probability(back, lay)
    margin = arb_margin(back, lay)
    print(f"   Price gap:    {gap:.2%}")
    print(f"   Implied prob: {implied:.4f}")
    print(f"   Arb margin:   {margin:.2%}")

    ok = 0 < gap < 0.03 and implied < 1 and margin > 0
    print("   ✅ Math OK" if ok else "   ❌ Unexpected result")
    return ok


async def main() -> int:
    print("""
╔══════════════════════════════════════════════════════════════╗
║                   ARB SEEKER DIAGNOSTICS                     ║
╚══════════════════════════════════════════════════════════════╝
    """)

    load_dotenv()
    settings = Settings()
    results = {
        "config": check_config(settings),
        "telegram": await check_telegram(settings),
        "odds_api": await check_odds_api(settings),
        "betfair": await check_betfair(settings),
        "math": check_math(),
    }

    print()
    print("=" * 64)
    for name, passed in results.items():
        print(f"   {'✅' if passed else '❌'} {name}")
    print("=" * 64)

    return 0 if all(results.values()) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
