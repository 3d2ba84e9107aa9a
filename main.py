import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from config import Settings
from database import MemberStore, get_database
from errors import PersistenceError, RosterError, UploadError, ValidationError
from photos import PhotoStorage, PhotoUpload, build_photo_storage
from schemas import DashboardStats, Member, Message
from service import MemberService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


# ---------- Request helpers ----------

async def read_member_request(request: Request) -> Tuple[Dict[str, Any], Optional[PhotoUpload]]:
    """Split a multipart form (or JSON body) into plain fields and the optional photo part."""
    content_type = request.headers.get('content-type', '')
    if content_type.startswith('application/json'):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError('Request body is not valid JSON')
        if not isinstance(body, dict):
            raise ValidationError('Request body must be a JSON object')
        return body, None

    fields: Dict[str, Any] = {}
    photo: Optional[PhotoUpload] = None
    form = await request.form()
    try:
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key != 'photo':
                    raise UploadError(f"Upload error: Unexpected field {key}")
                if photo is not None:
                    raise UploadError('Upload error: Too many files')
                photo = PhotoUpload(
                    filename=value.filename or 'photo',
                    content_type=value.content_type,
                    data=await value.read(),
                )
            else:
                fields[key] = value
    finally:
        await form.close()
    return fields, photo


# ---------- App ----------

def get_service(request: Request) -> MemberService:
    return request.app.state.service


def get_photos(request: Request) -> PhotoStorage:
    return request.app.state.photos


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the app. The store client and the photo directory are only created
    when the app starts serving, so importing this module has no side effects.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        db = database if database is not None else get_database(settings)
        photos = build_photo_storage(settings)
        photos.prepare()
        store = MemberStore(db)
        app.state.store = store
        app.state.photos = photos
        app.state.service = MemberService(store, photos, settings)
        logger.info("member roster on database %r, %s photo storage", settings.database_name, settings.photo_storage)
        try:
            yield
        finally:
            if database is None:
                db.client.close()

    app = FastAPI(title="Gym Roster API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    if settings.photo_storage == 'local':
        app.mount(settings.photo_url_prefix, StaticFiles(directory=settings.photo_dir, check_dir=False), name="photos")

    @app.exception_handler(RosterError)
    async def roster_error_handler(request: Request, exc: RosterError):
        if isinstance(exc, PersistenceError):
            return JSONResponse(status_code=exc.status_code, content={"message": "Server error", "error": exc.message})
        body: Dict[str, Any] = {"message": exc.message}
        if isinstance(exc, ValidationError) and exc.errors:
            body["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=body)

    async def store_photo(photos: PhotoStorage, upload: Optional[PhotoUpload]) -> Optional[str]:
        if upload is None:
            return None
        return await run_in_threadpool(photos.save, upload)

    @app.get("/")
    def root():
        return {"message": "Gym roster server is running"}

    # ---------- Members ----------

    @app.get("/api/members", response_model=List[Member])
    def list_members(service: MemberService = Depends(get_service)):
        return service.list_members()

    @app.get("/api/members/stats/dashboard", response_model=DashboardStats)
    def dashboard_stats(service: MemberService = Depends(get_service)):
        return service.dashboard_stats()

    @app.get("/api/members/{member_id}", response_model=Member)
    def get_member(member_id: str, service: MemberService = Depends(get_service)):
        return service.get_member(member_id)

    @app.post("/api/members", response_model=Member, status_code=201)
    async def create_member(
        request: Request,
        service: MemberService = Depends(get_service),
        photos: PhotoStorage = Depends(get_photos),
    ):
        fields, upload = await read_member_request(request)
        reference = await store_photo(photos, upload)
        try:
            return await run_in_threadpool(service.create_member, fields, reference)
        except Exception:
            # nothing points at the new photo yet
            await run_in_threadpool(photos.release, reference)
            raise

    @app.put("/api/members/{member_id}", response_model=Member)
    async def update_member(
        member_id: str,
        request: Request,
        service: MemberService = Depends(get_service),
        photos: PhotoStorage = Depends(get_photos),
    ):
        fields, upload = await read_member_request(request)
        reference = await store_photo(photos, upload)
        try:
            return await run_in_threadpool(service.update_member, member_id, fields, reference)
        except Exception:
            await run_in_threadpool(photos.release, reference)
            raise

    @app.delete("/api/members/{member_id}", response_model=Message)
    def delete_member(member_id: str, service: MemberService = Depends(get_service)):
        return service.delete_member(member_id)

    # Health/test
    @app.get("/test")
    def test_database(request: Request):
        response = {
            "backend": "Running",
            "database": "Not Available",
            "database_url": "Set" if settings.database_url_configured else "Not Set",
            "database_name": settings.database_name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            response["collections"] = request.app.state.store.collection_names()[:10]
            response["connection_status"] = "Connected"
            response["database"] = "Connected & Working"
        except PersistenceError as e:
            response["database"] = f"Error: {e.message[:80]}"
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
