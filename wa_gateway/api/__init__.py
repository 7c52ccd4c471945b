from wa_gateway.api.send import router

__all__ = ["router"]
