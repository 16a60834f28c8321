from datetime import datetime
from pydantic import BaseModel, EmailStr, field_validator
from typing import Literal, Optional

from utils.currency import normalize_currency

SplitMethod = Literal["equal", "exact", "percentage", "shares"]
GroupType = Literal["trip", "home", "couple", "other"]


class User(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    default_currency: str
    avatar_url: Optional[str] = None
    status: str

    class Config:
        from_attributes = True

# Split schemas
class SplitInput(BaseModel):
    """One participant's row on an expense: what they paid out and their fair share."""
    user_id: int
    paid_amount: float = 0.0
    owed_amount: float = 0.0

    class Config:
        allow_inf_nan = False

class SplitShare(BaseModel):
    user_id: int
    value: float  # exact amount, percentage or share count depending on split_method

    class Config:
        allow_inf_nan = False

class PayerShare(BaseModel):
    user_id: int
    amount: float

    class Config:
        allow_inf_nan = False

class ExpenseCreate(BaseModel):
    description: str
    total_amount: float
    currency: str = "USD"
    category: Optional[str] = None
    date: Optional[str] = None
    group_id: Optional[int] = None
    split_method: SplitMethod = "equal"
    # Either explicit splits...
    splits: Optional[list[SplitInput]] = None
    # ...or a split intent resolved by the split calculator
    participants: Optional[list[int]] = None
    split_details: Optional[list[SplitShare]] = None
    paid_by: Optional[int] = None
    payers: Optional[list[PayerShare]] = None
    notes: Optional[str] = None

    class Config:
        allow_inf_nan = False

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        return normalize_currency(v)

class Expense(BaseModel):
    id: int
    group_id: Optional[int] = None
    paid_by_id: int
    description: str
    total_amount: float
    currency: str
    category: Optional[str] = None
    date: str
    created_by_id: int
    split_method: str
    is_settlement: bool = False
    is_multi_payer: bool = False
    payer_count: int
    split_count: int
    notes: Optional[str] = None
    is_deleted: bool = False

    class Config:
        from_attributes = True

class ExpenseSplitDetail(BaseModel):
    user_id: int
    user_name: str
    paid_amount: float
    owed_amount: float
    net_amount: float

class ExpenseDetail(BaseModel):
    id: int
    description: str
    total_amount: float
    currency: str
    category: Optional[str] = None
    date: str
    split_method: str
    notes: Optional[str] = None
    is_settlement: bool
    is_deleted: bool = False
    payer_name: str
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    splits: list[ExpenseSplitDetail]

class Involvement(BaseModel):
    type: Literal["borrowed", "lent", "settled_up", "not_involved"]
    amount: float

class ExpenseSummary(BaseModel):
    """An expense as listed in group and friend views, from the caller's point of view."""
    id: int
    description: str
    total_amount: float
    currency: str
    category: Optional[str] = None
    date: str
    is_settlement: bool
    paid_by_name: str
    my_involvement: Involvement

class SettlementCreate(BaseModel):
    payer_id: int
    payee_id: int
    amount: float
    currency: str = "USD"
    group_id: Optional[int] = None

    class Config:
        allow_inf_nan = False

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        return normalize_currency(v)

# Group schemas
class GroupMemberInvite(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

class GroupCreate(BaseModel):
    name: str
    type: Optional[GroupType] = None
    default_currency: str = "USD"
    simplify_debts: bool = False
    members: list[GroupMemberInvite] = []

    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v):
        return normalize_currency(v)

class GroupUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[GroupType] = None
    default_currency: Optional[str] = None
    simplify_debts: Optional[bool] = None

    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v):
        return normalize_currency(v) if v is not None else v

class Group(BaseModel):
    id: int
    name: str
    created_by_id: int
    default_currency: str
    type: Optional[str] = None
    simplify_debts: bool = False

    class Config:
        from_attributes = True

class GroupMember(BaseModel):
    user_id: int
    name: str
    email: Optional[str] = None
    role: str
    status: str

# Balance schemas
class MemberBalance(BaseModel):
    """Balance with one other user. Positive means they owe you."""
    user_id: int
    name: str
    amount: float
    currency: str

class PairBalance(BaseModel):
    """A stored balance row: positive means user2 owes user1."""
    user1_id: int
    user1_name: str
    user2_id: int
    user2_name: str
    amount: float
    currency: str

class ContextBalance(BaseModel):
    group_id: Optional[int] = None
    group_name: str
    amount: float
    currency: str

class CurrencyAmount(BaseModel):
    currency: str
    amount: float

class FriendAggregate(BaseModel):
    """Cross-context sum for a pair. Different currencies are added without conversion."""
    total_amount: float
    currency: str
    last_activity_at: Optional[datetime] = None

class PairBalanceView(BaseModel):
    friend_id: int
    contexts: list[ContextBalance]
    by_currency: list[CurrencyAmount]
    aggregate: Optional[FriendAggregate] = None

class GroupSummary(Group):
    my_net: float
    member_balances: list[MemberBalance]
    member_count: int
    my_role: str

class GroupList(BaseModel):
    groups: list[GroupSummary]
    overall_owed: float
    default_currency: str

class GroupDetail(Group):
    members: list[GroupMember]
    member_count: int
    my_net: float
    my_balances: list[MemberBalance]
    all_balances: list[PairBalance]
    my_role: str

class GroupBalances(BaseModel):
    group_id: int
    my_net_by_currency: list[CurrencyAmount]
    my_balances: list[MemberBalance]
    all_balances: list[PairBalance]

class GroupMemberAdd(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

class ContactCreate(BaseModel):
    """A person to transact with outside any group, looked up by email, then phone."""
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

# Friend schemas
class FriendSummary(BaseModel):
    friend_id: int
    name: str
    avatar_url: Optional[str] = None
    status: str
    net: float
    currency: str
    last_activity_at: datetime
    group_breakdowns: list[ContextBalance]

class FriendList(BaseModel):
    visible: list[FriendSummary]
    hidden: list[FriendSummary]
    you_owe: list[CurrencyAmount]
    you_are_owed: list[CurrencyAmount]
    default_currency: str

class FriendProfile(BaseModel):
    id: int
    name: str
    short_name: str
    avatar_url: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str

class FriendDetail(BaseModel):
    friend: FriendProfile
    overall_net: float
    currency: str
    group_breakdowns: list[ContextBalance]
    shared_expenses: list[ExpenseSummary]

# Activity schemas
class ActivityOut(BaseModel):
    id: int
    type: str
    actor_id: int
    actor_name: str
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    expense_id: Optional[int] = None
    details: dict
    my_amount: Optional[float] = None
    created_at: datetime
