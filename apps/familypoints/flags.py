import os


def enabled(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").lower() == "true"


def ledger_fallback_enabled() -> bool:
    # Wallet falls back to raw ledgers when the rollup view errors.
    return enabled("FEATURE_LEDGER_FALLBACK", "true")
