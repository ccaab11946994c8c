"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from trailhead.api.v1 import admin, bookings, disputes, referrals, trips

api_router = APIRouter()

# Trips
api_router.include_router(trips.router, prefix="/trips", tags=["Trips"])

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Disputes
api_router.include_router(disputes.router, prefix="/disputes", tags=["Disputes"])

# Referrals
api_router.include_router(referrals.router, prefix="/referrals", tags=["Referrals"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
