"""FastAPI application exposing search, leads, notes and projects.

Endpoints:
- POST /api/search - Directory search with website resolution
- GET/POST /api/leads - Filtered lead list, save search results
- PATCH /api/leads/{lead_id}/status - Move a lead through the pipeline
- PUT /api/leads/{lead_id}/project - Tag or untag a lead
- GET/POST /api/leads/{lead_id}/notes - Read and append notes
- DELETE /api/leads/{lead_id} - Remove a lead
- GET /api/leads/export.csv - CSV download of the filtered list
- GET /api/leads/digest - E-mail digest of the filtered list
- GET/POST /api/projects, PATCH/DELETE /api/projects/{project_id}
- POST /api/projects/{project_id}/search - Re-run a project's search
- GET /health - Health check endpoint

Example:
    uvicorn leadscout.api:create_app --factory --port 8080
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .aggregator import LeadAggregator
from .config import config
from .errors import InvalidInput, SourceError
from .export import csv_filename, email_digest, leads_to_csv, mailto_link
from .leads import LeadStore
from .models import BusinessRecord, Lead
from .notes import NoteStore
from .pipeline import LeadSearchPipeline, saveable
from .places import PlaceSource
from .projects import ProjectStore
from .scoring import filter_leads
from .storage import KeyValueStore
from .website import WebsiteResolver

logger = logging.getLogger(__name__)


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(_Request):
    query: Optional[str] = None
    location: Optional[str] = None


class SaveLeadsRequest(_Request):
    businesses: list[BusinessRecord] = Field(default_factory=list)
    project_id: Optional[str] = None


class StatusUpdate(_Request):
    status: str


class ProjectAssignment(_Request):
    project_id: Optional[str] = None


class NoteCreate(_Request):
    text: str = ""


class ProjectCreate(_Request):
    name: str = ""
    query: Optional[str] = None
    location: Optional[str] = None


class ProjectRename(_Request):
    name: str = ""


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    """First validation problem as ``field: message``."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


def create_app(
    source: Optional[PlaceSource] = None,
    resolver: Optional[WebsiteResolver] = None,
    store: Optional[KeyValueStore] = None,
    database_url: Optional[str] = None,
) -> FastAPI:
    """Build the application.

    Args:
        source: Places directory. Defaults to the configured one.
        resolver: Website resolver. Defaults to HEAD probing.
        store: Key/value store. Defaults to ``LEADSCOUT_DATABASE_URL``;
            a store passed in is opened but not closed by the app.
        database_url: URL of the store the app opens and closes itself.
            Ignored when ``store`` is given.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Lead Scout API starting...")
        kv = store or KeyValueStore(database_url)
        kv.open()
        leads = LeadStore(kv)
        app.state.store = kv
        app.state.leads = leads
        app.state.projects = ProjectStore(kv, leads)
        app.state.notes = NoteStore(kv)
        app.state.pipeline = LeadSearchPipeline(
            source=source, aggregator=LeadAggregator(resolver)
        )
        if not config.has_places_api_key and source is None:
            logger.warning("GOOGLE_PLACES_API_KEY not set - search returns sample data")
        logger.info("Lead Scout API ready")

        yield

        logger.info("Lead Scout API shutting down...")
        app.state.pipeline.close()
        if store is None:
            kv.close()

    app = FastAPI(
        title="Lead Scout",
        description="Find local businesses without a website and track outreach",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(SourceError)
    async def source_error_handler(request: Request, exc: SourceError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error: %s %s - %s",
            request.method,
            request.url.path,
            str(exc),
            exc_info=True,
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or type(exc).__name__)

    _register_routes(app)
    return app


def get_pipeline(request: Request) -> LeadSearchPipeline:
    return request.app.state.pipeline


def get_leads(request: Request) -> LeadStore:
    return request.app.state.leads


def get_projects(request: Request) -> ProjectStore:
    return request.app.state.projects


def get_notes(request: Request) -> NoteStore:
    return request.app.state.notes


def _require_lead(leads: LeadStore, lead_id: str) -> Lead:
    lead = leads.get(lead_id)
    if lead is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    return lead


def _require_project(projects: ProjectStore, project_id: str):
    project = projects.get(project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def _filtered(
    leads: LeadStore,
    project_id: Optional[str],
    status_filter: Optional[str],
    q: Optional[str],
    exclude_chains: bool,
) -> list[Lead]:
    try:
        return filter_leads(
            leads.list(),
            project_id=project_id,
            status=status_filter,
            text=q,
            exclude_chains=exclude_chains,
        )
    except ValueError as e:
        raise InvalidInput(f"Unknown status: {status_filter}") from e


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "leadscout",
            "version": __version__,
            "places_configured": config.has_places_api_key,
            "store_open": request.app.state.store.is_open,
        }

    @app.post("/api/search")
    async def search(
        body: SearchRequest,
        pipeline: LeadSearchPipeline = Depends(get_pipeline),
    ) -> dict[str, Any]:
        result = await pipeline.search(body.query, body.location)
        return result.to_dict()

    @app.get("/api/leads")
    async def list_leads(
        project_id: Optional[str] = Query(None),
        status_filter: Optional[str] = Query(None, alias="status"),
        q: Optional[str] = Query(None),
        exclude_chains: bool = Query(False),
        leads: LeadStore = Depends(get_leads),
    ) -> dict[str, Any]:
        selected = _filtered(leads, project_id, status_filter, q, exclude_chains)
        return {"leads": [lead.to_payload() for lead in selected]}

    @app.post("/api/leads", status_code=status.HTTP_201_CREATED)
    async def save_leads(
        body: SaveLeadsRequest,
        leads: LeadStore = Depends(get_leads),
        projects: ProjectStore = Depends(get_projects),
    ) -> dict[str, Any]:
        """Save search results without a website as new leads."""
        if body.project_id:
            _require_project(projects, body.project_id)
        candidates = saveable(body.businesses)
        created = leads.add(candidates, project_id=body.project_id)
        return {
            "leads": [lead.to_payload() for lead in created],
            "skipped": len(body.businesses) - len(created),
        }

    @app.get("/api/leads/export.csv")
    async def export_csv(
        project_id: Optional[str] = Query(None),
        status_filter: Optional[str] = Query(None, alias="status"),
        q: Optional[str] = Query(None),
        exclude_chains: bool = Query(False),
        leads: LeadStore = Depends(get_leads),
        notes: NoteStore = Depends(get_notes),
    ) -> Response:
        selected = _filtered(leads, project_id, status_filter, q, exclude_chains)
        content = leads_to_csv(selected, notes.latest_texts())
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{csv_filename()}"'},
        )

    @app.get("/api/leads/digest")
    async def digest(
        project_id: Optional[str] = Query(None),
        status_filter: Optional[str] = Query(None, alias="status"),
        q: Optional[str] = Query(None),
        exclude_chains: bool = Query(False),
        leads: LeadStore = Depends(get_leads),
    ) -> dict[str, str]:
        selected = _filtered(leads, project_id, status_filter, q, exclude_chains)
        subject, body = email_digest(selected)
        return {"subject": subject, "body": body, "mailto": mailto_link(subject, body)}

    @app.patch("/api/leads/{lead_id}/status")
    async def update_status(
        lead_id: str,
        body: StatusUpdate,
        leads: LeadStore = Depends(get_leads),
    ) -> dict[str, Any]:
        try:
            lead = leads.update_status(lead_id, body.status)
        except ValueError as e:
            raise InvalidInput(f"Unknown status: {body.status}") from e
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
        return lead.to_payload()

    @app.put("/api/leads/{lead_id}/project")
    async def assign_project(
        lead_id: str,
        body: ProjectAssignment,
        leads: LeadStore = Depends(get_leads),
        projects: ProjectStore = Depends(get_projects),
    ) -> dict[str, Any]:
        _require_lead(leads, lead_id)
        if body.project_id:
            _require_project(projects, body.project_id)
        leads.assign_project([lead_id], body.project_id)
        return leads.get(lead_id).to_payload()

    @app.delete("/api/leads/{lead_id}")
    async def delete_lead(lead_id: str, leads: LeadStore = Depends(get_leads)) -> dict[str, bool]:
        if not leads.remove(lead_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
        return {"deleted": True}

    @app.get("/api/leads/{lead_id}/notes")
    async def list_notes(
        lead_id: str,
        leads: LeadStore = Depends(get_leads),
        notes: NoteStore = Depends(get_notes),
    ) -> dict[str, Any]:
        _require_lead(leads, lead_id)
        return {"notes": [note.to_payload() for note in notes.for_lead(lead_id)]}

    @app.post("/api/leads/{lead_id}/notes")
    async def add_note(
        lead_id: str,
        body: NoteCreate,
        leads: LeadStore = Depends(get_leads),
        notes: NoteStore = Depends(get_notes),
    ) -> dict[str, Any]:
        """Append a note; blank text is accepted and ignored."""
        _require_lead(leads, lead_id)
        note = notes.add(lead_id, body.text)
        return {"note": note.to_payload() if note else None}

    @app.get("/api/projects")
    async def list_projects(projects: ProjectStore = Depends(get_projects)) -> dict[str, Any]:
        counts = projects.lead_counts()
        return {
            "projects": [
                {**project.to_payload(), "leadCount": counts.get(project.id, 0)}
                for project in projects.list()
            ]
        }

    @app.post("/api/projects", status_code=status.HTTP_201_CREATED)
    async def create_project(
        body: ProjectCreate,
        projects: ProjectStore = Depends(get_projects),
    ) -> dict[str, Any]:
        if not body.name.strip():
            raise InvalidInput("Project name is required")
        project = projects.create(body.name, body.query, body.location)
        if project is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Project could not be saved",
            )
        return project.to_payload()

    @app.patch("/api/projects/{project_id}")
    async def rename_project(
        project_id: str,
        body: ProjectRename,
        projects: ProjectStore = Depends(get_projects),
    ) -> dict[str, Any]:
        _require_project(projects, project_id)
        projects.rename(project_id, body.name)
        return projects.get(project_id).to_payload()

    @app.delete("/api/projects/{project_id}")
    async def delete_project(
        project_id: str,
        projects: ProjectStore = Depends(get_projects),
    ) -> dict[str, bool]:
        if not projects.delete(project_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
        return {"deleted": True}

    @app.post("/api/projects/{project_id}/search")
    async def search_project_again(
        project_id: str,
        projects: ProjectStore = Depends(get_projects),
        pipeline: LeadSearchPipeline = Depends(get_pipeline),
    ) -> dict[str, Any]:
        project = _require_project(projects, project_id)
        result = await pipeline.search_again(project)
        return result.to_dict()


def serve(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
    database_url: Optional[str] = None,
) -> None:
    """Run the API with uvicorn.

    ``database_url`` overrides ``LEADSCOUT_DATABASE_URL`` for this server.
    """
    import uvicorn

    host = host or config.API_HOST
    port = port or config.API_PORT
    logger.info("Starting Lead Scout API on %s:%d", host, port)
    if reload:
        # The reloader imports the factory in a child process
        if database_url:
            os.environ["LEADSCOUT_DATABASE_URL"] = database_url
        uvicorn.run(
            "leadscout.api:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
        )
        return
    uvicorn.run(create_app(database_url=database_url), host=host, port=port)


if __name__ == "__main__":
    from .logging_utils import setup_logging

    setup_logging()
    serve()
