"""Constants shared across the paystream pipeline."""

import re

SCHEMA_VERSION = "1.0.0"
DECISION_ENGINE_VERSION = "decision-engine/1.0"

# Settlement network addresses are 20-byte hex strings.
WALLET_ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

ELIGIBLE_PAYEE_STATUSES = frozenset({"active", "pending"})

COMPLIANCE_CHECKS = (
    "fraud_detection",
    "duplicate_check",
    "threshold_validation",
    "wallet_validation",
)

PERIODS_PER_YEAR = {"weekly": 52, "biweekly": 26, "monthly": 12}
# 40 hours a week; hours beyond these are paid as overtime.
EXPECTED_HOURS = {"weekly": 40, "biweekly": 80, "monthly": 160}
OVERTIME_MULTIPLIER = 1.5

BATCH_PAYER_ABI = [
    {
        "inputs": [
            {"internalType": "address[]", "name": "recipients", "type": "address[]"},
            {"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"},
        ],
        "name": "batchPay",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
]


def is_valid_address(address: object) -> bool:
    """Return ``True`` when ``address`` matches the settlement address format."""
    return isinstance(address, str) and bool(WALLET_ADDRESS_PATTERN.fullmatch(address))
