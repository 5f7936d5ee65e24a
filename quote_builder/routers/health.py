from fastapi import APIRouter, Request


router = APIRouter(prefix="/healthz", tags=["health"])


@router.get("")
async def healthz(request: Request):
    quotes = await request.app.state.quotes.list()
    return {"status": "ok", "quotes": len(quotes)}
