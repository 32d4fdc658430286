"""Upstream clients: DexScreener, Jupiter and Solana JSON-RPC."""
