#!/usr/bin/env python3
"""
Create the ledger tables from models. Existing tables are left untouched.
"""
from database import DATABASE_PATH, engine, Base
from models import (
    User, Group, GroupMember, Expense, ExpenseSplit,
    Balance, FriendBalance, Activity
)

if __name__ == "__main__":
    print(f"Creating ledger tables in {DATABASE_PATH}...")
    Base.metadata.create_all(bind=engine)
    print(f"✓ Created {len(Base.metadata.tables)} tables successfully!")
