from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, JSON, UniqueConstraint, Index
from database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, index=True, nullable=True)
    default_currency = Column(String, default="USD")
    avatar_url = Column(String, nullable=True)
    status = Column(String, default="active")  # 'active' or 'invited'
    invited_by_id = Column(Integer, nullable=True)


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_by_id = Column(Integer)
    default_currency = Column(String, default="USD")
    type = Column(String, nullable=True)  # trip, home, couple, other
    simplify_debts = Column(Boolean, default=False)  # Persisted only, never acted upon


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, index=True)
    user_id = Column(Integer, index=True)
    role = Column(String, default="member")  # 'admin' or 'member'
    status = Column(String, default="invited")  # 'invited', 'joined' or 'left'
    invited_by_id = Column(Integer, nullable=True)
    joined_at = Column(DateTime, nullable=True)


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, nullable=True, index=True)  # None means a direct, non-group expense
    paid_by_id = Column(Integer, index=True)
    description = Column(String)
    total_amount = Column(Float)
    currency = Column(String, default="USD")
    category = Column(String, nullable=True)
    date = Column(String)  # ISO date string, the logical transaction date
    created_by_id = Column(Integer)
    split_method = Column(String, default="equal")  # equal, exact, percentage, shares
    is_settlement = Column(Boolean, default=False)
    is_multi_payer = Column(Boolean, default=False)
    payer_count = Column(Integer, default=1)
    split_count = Column(Integer, default=0)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    is_deleted = Column(Boolean, default=False)
    deleted_by_id = Column(Integer, nullable=True)
    deleted_at = Column(DateTime, nullable=True)


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"
    __table_args__ = (
        Index("ix_expense_splits_user_expense", "user_id", "expense_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, index=True)
    user_id = Column(Integer, index=True)
    paid_amount = Column(Float, default=0.0)  # How much this user paid out
    owed_amount = Column(Float, default=0.0)  # This user's fair share


class Balance(Base):
    """Net amount user2 owes user1 in one context and currency (negative: user1 owes user2)."""
    __tablename__ = "balances"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", "group_id", "currency", name="uq_balance_pair_context_currency"),
        Index("ix_balances_pair_group", "user1_id", "user2_id", "group_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user1_id = Column(Integer, index=True)
    user2_id = Column(Integer, index=True)
    group_id = Column(Integer, nullable=True, index=True)
    currency = Column(String)
    amount = Column(Float, default=0.0)
    updated_at = Column(DateTime, default=datetime.utcnow)


class FriendBalance(Base):
    """Aggregate of every Balance row of a pair, across contexts and currencies."""
    __tablename__ = "friend_balances"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_friend_balance_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user1_id = Column(Integer, index=True)
    user2_id = Column(Integer, index=True)
    total_amount = Column(Float, default=0.0)
    currency = Column(String)
    last_activity_at = Column(DateTime, default=datetime.utcnow)


class Activity(Base):
    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_group_time", "group_id", "created_at"),
        Index("ix_activities_actor_time", "actor_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String)  # expense_added, expense_deleted, settlement, member_added, ...
    actor_id = Column(Integer)
    group_id = Column(Integer, nullable=True)
    expense_id = Column(Integer, nullable=True)
    involved_user_ids = Column(JSON, default=list)
    details = Column(JSON, default=dict)
    split_summary = Column(JSON, nullable=True)  # [{"user_id", "amount"}], amount = owed - paid
    created_at = Column(DateTime, default=datetime.utcnow)
