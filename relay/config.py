# relay/config.py
"""
Relay configuration.

Everything comes from the environment, with defaults matching the truffle
development network. RELAY_CONFIG_FILE may point at the dapp's config.json
({"localhost": {"url": ..., "appAddress": ...}}); explicit RELAY_RPC_URL /
RELAY_APP_ADDRESS win over it.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from relay.ledger import GENESIS, LATEST
from relay.status import FlightStatus

DEFAULT_RPC_URL = "http://127.0.0.1:9545"
DEFAULT_POOL_SIZE = 20
DEFAULT_ACCOUNT_OFFSET = 20
DEFAULT_STATUS = "late-airline"
DEFAULT_PORT = 80


@dataclass
class RelayConfig:
    rpc_url: str = DEFAULT_RPC_URL
    app_address: str = ""
    abi_file: str = ""
    pool_size: int = DEFAULT_POOL_SIZE
    account_offset: int = DEFAULT_ACCOUNT_OFFSET
    status_code: FlightStatus = FlightStatus.LATE_AIRLINE
    from_block: str = LATEST
    poll_interval: float = 2.0
    max_in_flight: int = 0
    registration_gas: int = 5_000_000
    response_gas: int = 500_000
    gas_price: int = 20_000_000
    port: int = DEFAULT_PORT

    def validate(self):
        if self.pool_size < 1:
            raise ValueError(f"pool size must be positive, got {self.pool_size}")
        if self.account_offset < 0:
            raise ValueError(f"account offset must be >= 0, got {self.account_offset}")
        if self.from_block not in (GENESIS, LATEST):
            raise ValueError(f"from_block must be '{GENESIS}' or '{LATEST}', got '{self.from_block}'")
        if self.poll_interval <= 0:
            raise ValueError(f"poll interval must be positive, got {self.poll_interval}")
        if self.max_in_flight < 0:
            raise ValueError(f"max in-flight must be >= 0, got {self.max_in_flight}")
        return self


def _int(env, name, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


def _float(env, name, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'")


def load_network_file(path, network="localhost"):
    with open(Path(path)) as f:
        networks = json.load(f)
    if network not in networks:
        raise ValueError(f"network '{network}' not found in {path}")
    return networks[network]


def load_config(env=None) -> RelayConfig:
    env = os.environ if env is None else env

    rpc_url = DEFAULT_RPC_URL
    app_address = ""
    if env.get("RELAY_CONFIG_FILE"):
        network = load_network_file(env["RELAY_CONFIG_FILE"], env.get("RELAY_NETWORK", "localhost"))
        rpc_url = network.get("url", rpc_url)
        app_address = network.get("appAddress", app_address)

    cfg = RelayConfig(
        rpc_url=env.get("RELAY_RPC_URL") or rpc_url,
        app_address=env.get("RELAY_APP_ADDRESS") or app_address,
        abi_file=env.get("RELAY_ABI_FILE", ""),
        pool_size=_int(env, "RELAY_POOL_SIZE", DEFAULT_POOL_SIZE),
        account_offset=_int(env, "RELAY_ACCOUNT_OFFSET", DEFAULT_ACCOUNT_OFFSET),
        status_code=FlightStatus.parse(env.get("RELAY_STATUS_CODE") or DEFAULT_STATUS),
        from_block=(env.get("RELAY_FROM_BLOCK") or LATEST).strip().lower(),
        poll_interval=_float(env, "RELAY_POLL_INTERVAL", 2.0),
        max_in_flight=_int(env, "RELAY_MAX_IN_FLIGHT", 0),
        registration_gas=_int(env, "RELAY_REGISTRATION_GAS", 5_000_000),
        response_gas=_int(env, "RELAY_RESPONSE_GAS", 500_000),
        gas_price=_int(env, "RELAY_GAS_PRICE", 20_000_000),
        port=_int(env, "RELAY_PORT", DEFAULT_PORT),
    )
    return cfg.validate()
