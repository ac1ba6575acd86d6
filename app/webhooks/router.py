# app/webhooks/router.py
from fastapi import APIRouter

webhook_router = APIRouter()


# Import handlers inside a function to avoid circular imports
def register_handlers():
    from app.webhooks import inbound_handler
    webhook_router.include_router(inbound_handler.router)


@webhook_router.get("")
async def webhook_info():
    return {
        "endpoints": {
            "inbound_events": "/api/webhook/{secret_key}",
        },
        "note": "POST JSON events; the secret comes from the webhook's callback URL"
    }


register_handlers()
