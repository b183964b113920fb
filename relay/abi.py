# relay/abi.py
"""
FlightSuretyApp ABI

Only the members the relay touches. A full truffle build artifact can be
used instead via RELAY_ABI_FILE.
"""

import json
from pathlib import Path

FLIGHT_SURETY_APP_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "REGISTRATION_FEE",
        "outputs": [{"name": "", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [],
        "name": "registerOracle",
        "outputs": [],
        "payable": True,
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "getMyIndexes",
        "outputs": [{"name": "", "type": "uint8[3]"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "index", "type": "uint8"},
            {"name": "airline", "type": "address"},
            {"name": "flight", "type": "string"},
            {"name": "timestamp", "type": "uint256"},
            {"name": "statusCode", "type": "uint8"},
        ],
        "name": "submitOracleResponse",
        "outputs": [],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "index", "type": "uint8"},
            {"indexed": False, "name": "airline", "type": "address"},
            {"indexed": False, "name": "flight", "type": "string"},
            {"indexed": False, "name": "timestamp", "type": "uint256"},
        ],
        "name": "OracleRequest",
        "type": "event",
    },
]


def load_abi(path=None):
    """Return the ABI from a truffle artifact (or bare ABI list), else the bundled one."""
    if not path:
        return FLIGHT_SURETY_APP_ABI
    with open(Path(path)) as f:
        data = json.load(f)
    if isinstance(data, dict):
        if "abi" not in data:
            raise ValueError(f"no 'abi' key in {path}")
        return data["abi"]
    return data
