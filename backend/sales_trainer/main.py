import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sales_trainer.api.v1.routes import router as v1_router
from sales_trainer.core.logging import logger, setup_logging
from sales_trainer.core.settings import settings
from sales_trainer.infra.ground_truth_loader import load_ground_truth

setup_logging()

app = FastAPI(
    title="Sales Call Trainer",
    version="0.1.0",
    description="Simulated customer calls for training and scoring sales managers",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router)


@app.on_event("startup")
async def _load_ground_truth():
    # Fails startup on a missing or malformed vehicle file
    app.state.ground_truth = load_ground_truth()
    logger.info(
        "Trainer ready (model=%s, offline=%s)",
        settings.openai_model,
        settings.force_offline,
    )


@app.get("/health")
async def health():
    return {"ok": True}


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    uvicorn.run("sales_trainer.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
