#!/usr/bin/env python3
"""Fetch quotes for a list of instruments from a running pricefeed and print their changes.

Usage: fetch_quotes.py AAPL:NASDAQ TEVA:TASE 142:TASE:INDEX EURUSD:FOREX
"""
import json
import sys

import requests

API = "http://localhost:8201/api/v2"
HORIZONS = ["1d", "1m", "3m", "1y", "ytd", "max"]


def parse_instrument(arg: str) -> dict:
    """TICKER[:EXCHANGE[:GROUP]] -> query params."""
    parts = arg.split(":")
    params = {"exchange": parts[1] if len(parts) > 1 else "NASDAQ", "history": "false"}
    if len(parts) > 2:
        params["group"] = parts[2]
    return {"ticker": parts[0], "params": params}


def fetch_quote(ticker: str, params: dict) -> dict:
    resp = requests.get(f"{API}/quotes/{ticker}", params=params, timeout=60)
    if resp.status_code == 404:
        return {"ticker": ticker, "status": "no data"}
    resp.raise_for_status()
    return {"ticker": ticker, "status": "ok", **resp.json()}


def fmt_pct(quote: dict, horizon: str) -> str:
    change = quote.get("changes", {}).get(horizon)
    return f"{change['pct'] * 100:+.2f}%" if change else "-"


def main():
    instruments = [parse_instrument(a) for a in sys.argv[1:]] or [parse_instrument("AAPL:NASDAQ")]

    results = []
    for inst in instruments:
        try:
            results.append(fetch_quote(inst["ticker"], inst["params"]))
        except Exception as e:
            results.append({"ticker": inst["ticker"], "status": "error", "error": str(e)})

    header = f"{'Ticker':<12} {'Symbol':<14} {'Price':>12} " + " ".join(f"{h:>9}" for h in HORIZONS)
    print(header)
    print("-" * len(header))
    for q in results:
        if q["status"] != "ok":
            print(f"{q['ticker']:<12} {q.get('error', q['status'])}")
            continue
        cached = " (cached)" if q.get("from_cache") else ""
        print(
            f"{q['ticker']:<12} {q.get('provider_symbol') or '':<14} {q['price']:>12.2f} "
            + " ".join(f"{fmt_pct(q, h):>9}" for h in HORIZONS)
            + cached
        )

    with open("quotes.json", "w") as f:
        json.dump(results, f, indent=2, default=str)
    print("\nFull results saved to quotes.json")


if __name__ == "__main__":
    main()
