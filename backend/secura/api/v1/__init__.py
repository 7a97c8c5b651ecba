"""Versioned API router."""

from fastapi import APIRouter

from . import events, guests, health, invitations, messages, qr_codes, scans

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(guests.router, tags=["guests"])
router.include_router(scans.router, tags=["scans"])
router.include_router(invitations.router, tags=["invitations"])
router.include_router(messages.router, tags=["messages"])
router.include_router(qr_codes.router, tags=["qr-codes"])
