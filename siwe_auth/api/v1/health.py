from fastapi import APIRouter, Depends, HTTPException

from siwe_auth.core.deps import get_nonce_store
from siwe_auth.core.errors import NonceStoreError
from siwe_auth.services.siwe_nonce_store import NonceStore

router = APIRouter()


@router.get("/health")
def health(store: NonceStore = Depends(get_nonce_store)):
    try:
        store.ping()
    except NonceStoreError as exc:
        raise HTTPException(status_code=503, detail={"code": exc.code, "message": exc.message})
    return {"status": "ok"}
