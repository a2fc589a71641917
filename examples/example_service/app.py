from __future__ import annotations

import os
import random
import time

from fastapi import FastAPI, HTTPException


VERSION = os.getenv("VERSION", "dev")
WARMUP_S = float(os.getenv("WARMUP_S", "0"))  # seconds before /health turns 200
FAIL_RATE = float(os.getenv("FAIL_RATE", "0"))  # 0..1

STARTED_AT = time.monotonic()

# Run with HTTP_CHECK="GET /health" so seqredeploy can gate on it.
app = FastAPI(title=f"Example Service {VERSION}")


@app.get("/health")
def health() -> dict[str, str]:
    if time.monotonic() - STARTED_AT < WARMUP_S:
        raise HTTPException(status_code=503, detail="warming up")
    # Optional fault injection to demo a stalled rollout.
    if FAIL_RATE > 0 and random.random() < FAIL_RATE:
        raise HTTPException(status_code=500, detail="injected failure")
    return {"status": "healthy"}


@app.get("/version")
def version() -> dict[str, str]:
    return {"version": VERSION}
