import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from recompute.database import StoreNotConfigured, require_store
from recompute.services.recompute import RecomputeSettings, RecomputeSetupError, run_recompute_batch


def main() -> int:
    parser = argparse.ArgumentParser(description="Drain one batch of the recommendation recompute queue")
    parser.add_argument("--batch", type=str, default=None)
    parser.add_argument("--candidates", type=str, default=None)
    parser.add_argument("--timeout-ms", type=str, default=None)
    args = parser.parse_args()

    try:
        require_store()
    except StoreNotConfigured as exc:
        print(json.dumps({"error": str(exc), "step": "config"}))
        return 1

    settings = RecomputeSettings.from_query(batch=args.batch, candidates=args.candidates, timeout_ms=args.timeout_ms)
    try:
        summary = asyncio.run(run_recompute_batch(settings))
    except RecomputeSetupError as exc:
        print(json.dumps({"error": exc.message, "step": exc.step}))
        return 1

    print(json.dumps(summary.as_response()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
