"""
FastAPI dependency getters. Services are built once in the application
lifespan and stored on app.state; tests swap them via dependency_overrides.
"""
from typing import Optional

import aiohttp
from fastapi import Header, Request

from roomlens.core.config import Settings
from roomlens.services.analysis_cache import SessionAnalysisCache
from roomlens.services.design_suggestion_service import DesignSuggestionService
from roomlens.services.product_search_service import ProductSearchService
from roomlens.services.render_service import RenderService
from roomlens.services.spatial_analysis_service import SpatialAnalysisService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_id(x_session_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Client session id from the X-Session-ID header, if any"""
    return x_session_id or None


def get_analysis_cache(request: Request) -> SessionAnalysisCache:
    return request.app.state.analysis_cache


def get_spatial_service(request: Request) -> SpatialAnalysisService:
    return request.app.state.spatial_service


def get_design_service(request: Request) -> DesignSuggestionService:
    return request.app.state.design_service


def get_render_service(request: Request) -> RenderService:
    return request.app.state.render_service


def get_product_service(request: Request) -> ProductSearchService:
    return request.app.state.product_service


def get_http_session(request: Request) -> aiohttp.ClientSession:
    return request.app.state.http_session
