"""
Point d'entrée principal de l'API d'authentification de l'application de budget.
Démarrage : uvicorn app.main:app --reload
"""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import app.models  # noqa: F401 : enregistre tous les modèles dans Base.metadata avant les routers
from app.config import settings
from app.exceptions import AuthError
from app.routers import auth
from app.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie de l'application : démarre et arrête le scheduler APScheduler."""
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Budgeting App API",
    description="Authentification (mot de passe + TOTP) de l'application de budget personnel",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : front React en local (à restreindre en production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(auth.router)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Erreurs métier : code HTTP porté par l'exception, message destiné au client."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Corps de requête invalide → 400 (et non 422), avec les messages des validateurs.
    Ces erreurs sont levées avant tout calcul bcrypt/TOTP.
    """
    messages = []
    for error in exc.errors():
        if error.get("type") == "missing":
            field = error["loc"][-1] if error.get("loc") else "?"
            messages.append(f"Champ obligatoire manquant : {field}.")
        else:
            messages.append(str(error.get("msg", "")).removeprefix("Value error, "))
    return JSONResponse(status_code=400, content={"detail": " ".join(messages) or "Requête invalide."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    Le détail n'est renvoyé au client qu'en développement.
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    content = {"detail": "Une erreur interne est survenue."}
    if settings.ENV == "development":
        content["error"] = repr(exc)
        content["traceback"] = traceback.format_exception(exc)
    return JSONResponse(status_code=500, content=content)


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Budgeting App API", "version": "0.1.0"}
