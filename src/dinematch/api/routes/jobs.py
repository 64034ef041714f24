"""
Manual sweep triggers (same code path as the ARQ cron entries).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from dinematch.bootstrap import Services

from .deps import get_services

router = APIRouter()

SWEEPS = ("reminders", "expiry")


@router.post("/jobs/sweep/{name}")
async def run_sweep(name: str, services: Services = Depends(get_services)):
    if name == "reminders":
        report = await services.reminder_sweeper.sweep()
    elif name == "expiry":
        report = await services.expiry_sweeper.sweep()
    else:
        raise HTTPException(status_code=404, detail=f"Unknown sweep: {name} (expected one of {', '.join(SWEEPS)})")
    return report.to_dict()
