import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get('/latest-price')
def latest_price(request: Request):
    store = request.app.state.ticker_store
    try:
        body = {symbol: quote.model_dump(mode='json') for symbol, quote in store.snapshot().items()}
        return JSONResponse(content=body)
    except (TypeError, ValueError) as exc:
        logger.error('[API][latest_price_error] error=%s', exc)
        raise HTTPException(status_code=500, detail='Error marshaling JSON') from exc


@router.get('/health')
def health(request: Request):
    poller = getattr(request.app.state, 'poller', None)
    return {
        'status': 'ok',
        'exchange': poller.name if poller is not None else None,
        'cached_symbols': len(request.app.state.ticker_store),
    }


@router.get('/metrics/ticker')
def ticker_metrics(request: Request):
    state = request.app.state
    out = {'store': state.ticker_store.metrics()}
    poller = getattr(state, 'poller', None)
    if poller is not None:
        out['poller'] = poller.metrics()
    scanner = getattr(state, 'scanner', None)
    if scanner is not None:
        out['scanner'] = scanner.metrics()
    return out
