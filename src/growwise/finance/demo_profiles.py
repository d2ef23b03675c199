"""Demo personas and the in-process registry that holds their live state.

Demo sessions never touch the database. Each persona is loaded from a fixture
into a process-wide registry and mutated in place when the user approves a
suggestion; `reset_demo_profile` restores the fixture.
"""

import logging

from ..exceptions import DemoProfileNotFoundError
from ..models import DemoProfile

logger = logging.getLogger(__name__)


def _bank(id, provider, last4, amount, rate):
    return {
        "id": id,
        "account_type": "bank",
        "provider_name": provider,
        "last_four_digits": last4,
        "total_amount": amount,
        "interest_rate": rate,
        "allocation_savings": 100,
    }


def _investment(id, provider, last4, amount, rate, savings, stocks, bonds):
    return {
        "id": id,
        "account_type": "investment",
        "provider_name": provider,
        "last_four_digits": last4,
        "total_amount": amount,
        "interest_rate": rate,
        "allocation_savings": savings,
        "allocation_stocks": stocks,
        "allocation_bonds": bonds,
    }


def _loan(id, provider, last4, amount, rate):
    return {
        "id": id,
        "account_type": "loan",
        "provider_name": provider,
        "last_four_digits": last4,
        "total_amount": amount,
        "interest_rate": rate,
    }


DEMO_FIXTURES: dict[str, dict] = {
    "young-professional": {
        "id": "young-professional",
        "name": "Alex Chen",
        "profile": {
            "legal_first_name": "Alex",
            "legal_last_name": "Chen",
            "preferred_first_name": "Alex",
            "income": "$125,000/year",
            "employment_type": "full-time",
            "goals": ["Buy a house", "Build emergency fund", "Max 401k"],
            "risk_inferred": "medium",
            "date_of_birth": "1996-03-15",
            "city": "San Francisco",
            "state": "CA",
        },
        "accounts": [
            _bank("demo-bank-1", "Chase", "4521", 28500, 4.25),
            _bank("demo-bank-2", "Marcus by Goldman Sachs", "7892", 15000, 5.05),
            _investment("demo-investment-1", "Fidelity 401k", "3345", 67500, 8.5, 0, 80, 20),
            _investment("demo-investment-2", "Robinhood", "9901", 12300, 12.3, 0, 95, 5),
            _loan("demo-loan-1", "SoFi", "2234", 18500, 5.99),
        ],
        "goals": [
            {
                "id": "demo-goal-1",
                "name": "Down Payment",
                "target_amount": 100000,
                "current_amount": 43500,
                "target_age": 32,
                "description": "Save for a 20% down payment on a home in the Bay Area",
                "saving_account": "Marcus HYSA",
                "investment_account": "Robinhood",
                "allocation_savings": 60,
                "allocation_stocks": 30,
                "allocation_bonds": 10,
            },
            {
                "id": "demo-goal-2",
                "name": "Emergency Fund",
                "target_amount": 30000,
                "current_amount": 28500,
                "target_age": 29,
                "description": "6 months of expenses for emergency situations",
                "saving_account": "Chase Savings",
                "investment_account": "None",
                "allocation_savings": 100,
            },
        ],
    },
    "family-focused": {
        "id": "family-focused",
        "name": "Sarah Johnson",
        "profile": {
            "legal_first_name": "Sarah",
            "legal_last_name": "Johnson",
            "preferred_first_name": "Sarah",
            "income": "$165,000/year",
            "employment_type": "full-time",
            "goals": ["Kids college fund", "Retirement savings", "Family vacation fund"],
            "risk_inferred": "medium",
            "date_of_birth": "1986-07-22",
            "city": "Austin",
            "state": "TX",
        },
        "accounts": [
            _bank("demo-bank-3", "Bank of America", "8834", 45000, 3.75),
            _bank("demo-bank-4", "Ally Bank", "1122", 22000, 4.85),
            _investment("demo-investment-3", "Vanguard 401k", "5567", 245000, 7.2, 0, 70, 30),
            _investment("demo-investment-4", "529 College Savings", "7789", 68000, 6.8, 10, 60, 30),
            _loan("demo-loan-2", "Mortgage - Wells Fargo", "4456", 285000, 6.25),
            _loan("demo-loan-3", "Auto Loan - Capital One", "3321", 18500, 4.99),
        ],
        "goals": [
            {
                "id": "demo-goal-3",
                "name": "College Fund - Emma",
                "target_amount": 120000,
                "current_amount": 68000,
                "target_age": 46,
                "description": "Save for daughter Emma's college education",
                "saving_account": "Ally HYSA",
                "investment_account": "529 Plan",
                "allocation_savings": 10,
                "allocation_stocks": 60,
                "allocation_bonds": 30,
            },
            {
                "id": "demo-goal-4",
                "name": "Early Retirement",
                "target_amount": 1500000,
                "current_amount": 245000,
                "target_age": 55,
                "description": "Retire early at 55 with comfortable savings",
                "saving_account": "None",
                "investment_account": "Vanguard 401k",
                "allocation_stocks": 70,
                "allocation_bonds": 30,
            },
            {
                "id": "demo-goal-5",
                "name": "Family Vacation Fund",
                "target_amount": 15000,
                "current_amount": 8500,
                "target_age": 39,
                "description": "Annual family vacation fund",
                "saving_account": "Bank of America",
                "investment_account": "None",
                "allocation_savings": 100,
            },
        ],
    },
    "near-retirement": {
        "id": "near-retirement",
        "name": "Robert Martinez",
        "profile": {
            "legal_first_name": "Robert",
            "legal_last_name": "Martinez",
            "preferred_first_name": "Bob",
            "income": "$210,000/year",
            "employment_type": "full-time",
            "goals": ["Secure retirement", "Healthcare fund", "Travel fund"],
            "risk_inferred": "low",
            "date_of_birth": "1966-11-08",
            "city": "Denver",
            "state": "CO",
        },
        "accounts": [
            _bank("demo-bank-5", "Wells Fargo", "6677", 125000, 4.5),
            _bank("demo-bank-6", "Discover HYSA", "9988", 75000, 5.15),
            _investment("demo-investment-5", "Fidelity 401k", "2233", 890000, 5.8, 0, 40, 60),
            _investment("demo-investment-6", "Schwab Brokerage", "4455", 320000, 6.2, 5, 45, 50),
            _loan("demo-loan-4", "Mortgage - Chase", "7788", 85000, 3.25),
        ],
        "goals": [
            {
                "id": "demo-goal-6",
                "name": "Retirement Nest Egg",
                "target_amount": 2000000,
                "current_amount": 1210000,
                "target_age": 65,
                "description": "Primary retirement fund for comfortable living",
                "saving_account": "Wells Fargo",
                "investment_account": "Fidelity 401k",
                "allocation_savings": 10,
                "allocation_stocks": 40,
                "allocation_bonds": 50,
            },
            {
                "id": "demo-goal-7",
                "name": "Healthcare Reserve",
                "target_amount": 150000,
                "current_amount": 125000,
                "target_age": 65,
                "description": "HSA and additional healthcare savings",
                "saving_account": "Discover HYSA",
                "investment_account": "None",
                "allocation_savings": 80,
                "allocation_stocks": 10,
                "allocation_bonds": 10,
            },
            {
                "id": "demo-goal-8",
                "name": "Travel & Leisure",
                "target_amount": 100000,
                "current_amount": 75000,
                "target_age": 66,
                "description": "Post-retirement travel and experiences fund",
                "saving_account": "Discover HYSA",
                "investment_account": "Schwab Brokerage",
                "allocation_savings": 40,
                "allocation_stocks": 30,
                "allocation_bonds": 30,
            },
        ],
    },
}

# Live demo state, mutated in place by approved suggestions
_profiles: dict[str, DemoProfile] = {}
# Per-persona decision ledger: suggestion key -> decision
_decisions: dict[str, dict[str, str]] = {}


def get_demo_profile(profile_id: str) -> DemoProfile:
    """Return the live, mutable state of a demo persona."""
    if profile_id not in DEMO_FIXTURES:
        raise DemoProfileNotFoundError(f"Demo profile '{profile_id}' not found.")
    if profile_id not in _profiles:
        _profiles[profile_id] = DemoProfile.model_validate(DEMO_FIXTURES[profile_id])
    return _profiles[profile_id]


def get_demo_decisions(profile_id: str) -> dict[str, str]:
    get_demo_profile(profile_id)
    return _decisions.setdefault(profile_id, {})


def reset_demo_profile(profile_id: str) -> DemoProfile:
    """Restore a persona to its fixture and forget its decisions."""
    if profile_id not in DEMO_FIXTURES:
        raise DemoProfileNotFoundError(f"Demo profile '{profile_id}' not found.")
    _profiles.pop(profile_id, None)
    _decisions.pop(profile_id, None)
    logger.info("Demo profile %s reset", profile_id)
    return get_demo_profile(profile_id)


def reset_demo_profiles() -> None:
    _profiles.clear()
    _decisions.clear()
