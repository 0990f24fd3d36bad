"""
Top up a user's scan credits.

    python -m scripts.grant_credits USER_ID AMOUNT
"""
import argparse
import asyncio

from app.features.credits.services.ledger import CreditLedger
from app.platform.db.session import SessionLocal


async def grant_credits(user_id: str, amount: int) -> int:
    async with SessionLocal() as db:
        return await CreditLedger(db).grant(user_id, amount)


def main():
    parser = argparse.ArgumentParser(description="Grant scan credits to a user")
    parser.add_argument("user_id")
    parser.add_argument("amount", type=int)
    args = parser.parse_args()

    balance = asyncio.run(grant_credits(args.user_id, args.amount))
    print(f"User {args.user_id} now has {balance} scan credits")


if __name__ == "__main__":
    main()
