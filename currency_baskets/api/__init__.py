"""
Currency Baskets API Application Factory
"""

from fastapi import FastAPI

from .accounts import router as accounts_router
from .rates import router as rates_router
from .. import __version__


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Currency Baskets API",
        description="Versioned currency holdings with base-currency aggregation",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    
    # Include routers
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(rates_router, prefix="/rates", tags=["Rates"])
    
    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "currency_baskets_api",
            "version": __version__
        }
    
    return app
