import pytest

from paystream.scoring import HeuristicScorer


@pytest.mark.asyncio
async def test_complete_payroll_scores_base():
    data = {"employees": [{"walletAddress": "0x" + "a" * 40, "amount": 10, "status": "active"}]}
    assert await HeuristicScorer().score("payroll-approval", data) == 0.92


@pytest.mark.asyncio
async def test_incomplete_payees_lower_the_score():
    data = {
        "employees": [
            {"walletAddress": "0x" + "a" * 40, "amount": 10, "status": "active"},
            {"walletAddress": "", "amount": 10, "status": "active"},
        ]
    }
    assert await HeuristicScorer().score("payroll-approval", data) == 0.77


@pytest.mark.asyncio
async def test_score_never_drops_below_floor():
    assert await HeuristicScorer().score("expense-approval", {}) == 0.72
    assert await HeuristicScorer(base=0.3).score("payroll-approval", {}) == 0.5
