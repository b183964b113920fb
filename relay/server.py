# relay/server.py
"""
FlightSurety Oracle Relay — Service

On startup: registers the oracle pool, then watches OracleRequest events
and answers them. A small read-only HTTP API reports what the relay is
doing.

Usage:
  python3 -m relay.server                      # env config, port 80
  python3 -m relay.server --port 3000 --from-block genesis
"""

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from relay import __version__
from relay.abi import load_abi
from relay.bootstrap import BootstrapSequencer
from relay.config import load_config
from relay.dispatcher import EventDispatcher
from relay.errors import RegistrationFailed
from relay.ledger import GENESIS, LATEST, ContractLedger
from relay.registry import OracleRegistry
from relay.status import FlightStatus, fixed_status
from relay.submitter import ResponseSubmitter

log = logging.getLogger("relay")


def build_ledger(cfg):
    if not cfg.app_address:
        raise ValueError("RELAY_APP_ADDRESS (or appAddress in RELAY_CONFIG_FILE) is required")
    return ContractLedger(
        cfg.rpc_url,
        cfg.app_address,
        abi=load_abi(cfg.abi_file or None),
        registration_gas=cfg.registration_gas,
        response_gas=cfg.response_gas,
        gas_price=cfg.gas_price,
        poll_interval=cfg.poll_interval,
    )


def _dispatcher_done(state, task):
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error("Dispatcher stopped with an error", exc_info=exc)
        state.phase = "failed"
    else:
        log.warning("OracleRequest stream ended")
        state.phase = "stopped"


def create_app(cfg=None, ledger=None, resolver=None) -> FastAPI:
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app):
        state = app.state
        state.ledger = ledger or build_ledger(cfg)
        state.registry = OracleRegistry()
        state.report = None
        state.phase = "bootstrapping"

        sequencer = BootstrapSequencer(
            state.ledger,
            state.registry,
            pool_size=cfg.pool_size,
            account_offset=cfg.account_offset,
            max_concurrency=cfg.max_in_flight,
        )
        try:
            state.report = await sequencer.run()
        except RegistrationFailed as e:
            log.error(f"Bootstrap aborted: {e.reason}")

        submitter = ResponseSubmitter(state.ledger, resolver or fixed_status(cfg.status_code))
        state.dispatcher = EventDispatcher(
            state.ledger,
            state.registry,
            submitter,
            from_block=cfg.from_block,
            max_in_flight=cfg.max_in_flight,
        )
        state.phase = "listening"
        task = asyncio.create_task(state.dispatcher.run())
        task.add_done_callback(lambda t: _dispatcher_done(state, t))
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                log.error(f"Dispatcher failed during shutdown: {e!r}")
            state.phase = "stopped"

    app = FastAPI(
        title="FlightSurety Oracle Relay",
        description="Registers test oracles and answers OracleRequest events",
        lifespan=lifespan,
    )

    @app.get("/api")
    def api():
        return {"message": "An API for use with your Dapp!"}

    @app.get("/health")
    def health():
        report = app.state.report
        return {
            "status": "ok",
            "version": __version__,
            "phase": app.state.phase,
            "pool_size": cfg.pool_size,
            "registered": len(app.state.registry),
            "failed": len(report.failed) if report else None,
            "status_code": cfg.status_code.label,
        }

    @app.get("/oracles")
    def oracles():
        return JSONResponse(app.state.registry.snapshot())

    @app.get("/stats")
    def stats():
        return app.state.dispatcher.stats.as_dict()

    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="FlightSurety oracle relay")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (default: RELAY_PORT or 80)")
    parser.add_argument("--rpc-url", default=None, help="Ledger JSON-RPC endpoint")
    parser.add_argument("--app-address", default=None, help="FlightSuretyApp contract address")
    parser.add_argument("--pool-size", type=int, default=None, help="Number of oracle accounts to register")
    parser.add_argument("--from-block", choices=[GENESIS, LATEST], default=None)
    parser.add_argument(
        "--status",
        default=None,
        help=f"Simulated status ({', '.join(s.label for s in FlightStatus)})",
    )
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    args = parse_args(argv)
    cfg = load_config()
    if args.port is not None:
        cfg.port = args.port
    if args.rpc_url:
        cfg.rpc_url = args.rpc_url
    if args.app_address:
        cfg.app_address = args.app_address
    if args.pool_size is not None:
        cfg.pool_size = args.pool_size
    if args.from_block:
        cfg.from_block = args.from_block
    if args.status:
        cfg.status_code = FlightStatus.parse(args.status)
    cfg.validate()

    print(f"FlightSurety Oracle Relay v{__version__} starting on :{cfg.port}")
    print(f"  Ledger:   {cfg.rpc_url}")
    print(f"  Contract: {cfg.app_address}")
    print(f"  Oracles:  {cfg.pool_size} (accounts from #{cfg.account_offset})")
    print(f"  Status:   {cfg.status_code.label} ({int(cfg.status_code)})")
    uvicorn.run(create_app(cfg), host="0.0.0.0", port=cfg.port)


if __name__ == "__main__":
    main()
