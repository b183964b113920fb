"""
FlightSurety Oracle Relay

Registers a pool of oracle accounts with the FlightSuretyApp contract and
answers its OracleRequest events with flight status codes.
"""

__version__ = "1.0.0"
