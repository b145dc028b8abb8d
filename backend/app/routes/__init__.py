from fastapi import APIRouter
from app.routes import auth, users, categories, transactions, events

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/user", tags=["user"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(events.router, prefix="/events", tags=["events"])


@api_router.get("/health")
def api_health():
    return {"success": True, "message": "SmartBudget API is running", "status": "healthy"}
