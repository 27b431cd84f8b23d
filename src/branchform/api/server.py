"""fastapi server for branchform.

holds the current form graph and exposes the engine as REST endpoints
for a visual editor frontend.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ..core.chains import draggable_ids, get_linear_chain, list_chains
from ..core.models import (
    Choice,
    FormGraph,
    InfoPopup,
    QuantityChoice,
    StepType,
    get_forms_dir,
    list_saved_forms,
)
from ..core.mutations import (
    add_step,
    append_image,
    create_first_step,
    delete_step,
    update_step,
)
from ..core.render import export_mermaid, export_outline
from ..core.reorder import reorder_chain
from ..core.schema import (
    ChoiceSchema,
    InfoPopupSchema,
    QuantityChoiceSchema,
    SchemaError,
    parse_graph,
)
from ..core.snapshots import SnapshotManager
from ..core.traversal import build_path, count_descendants, orphan_ids
from ..core.uploads import (
    HttpUploader,
    MockUploader,
    UploadError,
    UploadProtocol,
    upload_image,
)

logger = logging.getLogger(__name__)


# --- configuration ---

DEFAULT_AUTOSAVE_INTERVAL = 30  # seconds
SESSION_FILE = ".branchform-session.json"
UPLOAD_URL_ENV = "BRANCHFORM_UPLOAD_URL"


# --- pydantic models for api ---

class FormCreate(BaseModel):
    """request to create a new form."""
    name: str
    root_type: str = "text"


class StepCreate(BaseModel):
    """request to add a step after a parent."""
    parent_id: str
    type: str
    choice_id: Optional[str] = None


class StepUpdate(BaseModel):
    """partial step fields, transport casing. unset fields are left alone."""
    question: Optional[str] = None
    placeholder: Optional[str] = None
    nextStepId: Optional[str] = None
    choices: Optional[list[ChoiceSchema]] = None
    quantityChoices: Optional[list[QuantityChoiceSchema]] = None
    thankYouMessage: Optional[str] = None
    submitButtonText: Optional[str] = None
    infoPopup: Optional[InfoPopupSchema] = None

    def to_fields(self) -> dict[str, Any]:
        """explicitly set fields as engine keyword arguments."""
        raw = self.model_dump(exclude_unset=True)
        fields: dict[str, Any] = {}
        for key, value in raw.items():
            if key == "choices":
                value = [Choice.from_dict(c) for c in value]
            elif key == "quantityChoices":
                value = [QuantityChoice.from_dict(qc) for qc in value]
            elif key == "infoPopup":
                value = InfoPopup.from_dict(value) if value else None
            fields[_snake(key)] = value
        return fields


class ReorderRequest(BaseModel):
    """request to move a step within the chain starting at chain_start_id."""
    chain_start_id: str
    step_id: str
    new_index: int


class FormResponse(BaseModel):
    """form in api response."""
    name: str
    graph: dict
    selected_step_id: Optional[str]
    orphan_ids: list[str]
    is_dirty: bool = False
    last_saved_at: Optional[str] = None
    form_path: Optional[str] = None


class ChainResponse(BaseModel):
    chain: list[str]
    draggable: list[str]


class FormListItem(BaseModel):
    """form summary for listing."""
    name: str
    path: str
    step_count: int
    modified_at: str


class StepCreated(BaseModel):
    step_id: str
    form: FormResponse


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def _parse_type(value: str) -> StepType:
    try:
        return StepType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid step type: {value}")


# --- app state ---

class AppState:
    """shared application state with auto-save."""

    def __init__(
        self,
        upload_url: Optional[str] = None,
        mock: bool = False,
        autosave_interval: int = DEFAULT_AUTOSAVE_INTERVAL,
    ):
        self.form: Optional[FormGraph] = None
        self.name: str = "untitled"
        self.form_path: Optional[Path] = None
        self.snapshots = SnapshotManager()
        self.upload_url = upload_url or os.environ.get(UPLOAD_URL_ENV)
        self.mock = mock
        self._uploader: Optional[UploadProtocol] = None

        # structural edits are serialized through this lock
        self.lock = asyncio.Lock()

        # Dirty state tracking
        self._dirty = False
        self._last_saved_at: Optional[str] = None

        self.autosave_interval = autosave_interval
        self._autosave_task: Optional[asyncio.Task] = None

    @property
    def uploader(self) -> UploadProtocol:
        if self._uploader is None:
            if self.mock or not self.upload_url:
                self._uploader = MockUploader()
            else:
                self._uploader = HttpUploader(self.upload_url)
        return self._uploader

    @property
    def is_dirty(self) -> bool:
        """check if form has unsaved changes."""
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    def mark_clean(self) -> None:
        self._dirty = False
        self._last_saved_at = datetime.now().isoformat()

    def replace(self, form: FormGraph) -> bool:
        """swap in a new graph value. returns True if anything changed."""
        if form is self.form:
            return False
        self.form = form
        self.mark_dirty()
        return True

    def open(self, form: FormGraph, name: str, path: Optional[Path]) -> None:
        self.form = form
        self.name = name
        self.form_path = path
        self.snapshots.clear()
        if form.root_step_id:
            self.snapshots.select(form, form.root_step_id)

    def get_session_file(self) -> Path:
        return get_forms_dir() / SESSION_FILE

    def save_session(self) -> None:
        """remember which form is open for crash recovery."""
        session = {
            "form_path": str(self.form_path) if self.form_path else None,
            "name": self.name,
            "last_saved_at": self._last_saved_at,
            "timestamp": datetime.now().isoformat(),
        }
        try:
            with open(self.get_session_file(), "w") as f:
                json.dump(session, f)
        except OSError as e:
            logger.warning(f"could not write session file: {e}")

    def load_session(self) -> Optional[dict]:
        try:
            with open(self.get_session_file()) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError):
            return None

    def save(self, path: Optional[Path] = None) -> Path:
        if self.form is None:
            raise ValueError("no form loaded")
        path = path or self.form_path or get_forms_dir() / f"{self.name}.json"
        self.form.save(path)
        self.form_path = path
        self.mark_clean()
        self.save_session()
        logger.info(f"saved form {self.name} to {path}")
        return path

    def auto_save(self) -> bool:
        """auto-save form if dirty and path is set. returns True if saved."""
        if not self._dirty or not self.form or not self.form_path:
            return False
        try:
            self.save()
            return True
        except OSError as e:
            logger.warning(f"auto-save failed: {e}")
            return False

    async def start_autosave(self) -> None:
        if self._autosave_task is not None or self.autosave_interval <= 0:
            return
        self._autosave_task = asyncio.create_task(self._autosave_loop())

    async def stop_autosave(self) -> None:
        if self._autosave_task:
            self._autosave_task.cancel()
            try:
                await self._autosave_task
            except asyncio.CancelledError:
                pass
            self._autosave_task = None

    async def _autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(self.autosave_interval)
            self.auto_save()

    def recover_from_crash(self) -> bool:
        """reopen the form from the last session. returns True if recovered."""
        session = self.load_session()
        if not session or not session.get("form_path"):
            return False
        path = Path(session["form_path"])
        if not path.exists():
            return False
        try:
            form = parse_graph(json.loads(path.read_text()))
        except (OSError, json.JSONDecodeError, SchemaError) as e:
            logger.warning(f"could not recover {path}: {e}")
            return False
        self.open(form, session.get("name") or path.stem, path)
        logger.info(f"recovered form from {path}")
        return True


state = AppState()


def _require_form() -> FormGraph:
    if state.form is None:
        raise HTTPException(status_code=404, detail="no form loaded")
    return state.form


def _require_step(step_id: str) -> FormGraph:
    form = _require_form()
    if step_id not in form.steps:
        raise HTTPException(status_code=404, detail=f"step not found: {step_id}")
    return form


def _form_response() -> FormResponse:
    form = _require_form()
    return FormResponse(
        name=state.name,
        graph=form.to_dict(),
        selected_step_id=state.snapshots.selected_step_id,
        orphan_ids=orphan_ids(form),
        is_dirty=state.is_dirty,
        last_saved_at=state._last_saved_at,
        form_path=str(state.form_path) if state.form_path else None,
    )


# --- lifespan ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    state.recover_from_crash()
    await state.start_autosave()
    yield
    state.auto_save()
    await state.stop_autosave()


# --- app ---

app = FastAPI(
    title="branchform api",
    description="REST API for editing branching questionnaire graphs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- endpoints ---

@app.get("/health")
async def health():
    """health check."""
    return {"status": "ok"}


@app.get("/status")
async def status():
    """current form and session info."""
    return {
        "has_form": state.form is not None,
        "name": state.name if state.form else None,
        "form_path": str(state.form_path) if state.form_path else None,
        "is_dirty": state.is_dirty,
        "last_saved_at": state._last_saved_at,
        "autosave_interval": state.autosave_interval,
        "step_count": len(state.form.steps) if state.form else 0,
        "selected_step_id": state.snapshots.selected_step_id,
    }


@app.post("/form", response_model=FormResponse)
async def create_form(req: FormCreate):
    """create a new form with a single root step."""
    step_type = _parse_type(req.root_type)
    form, _ = create_first_step(FormGraph(), step_type)
    safe_name = "".join(c if c.isalnum() or c in "-_" else "-" for c in req.name)
    state.open(form, req.name, get_forms_dir() / f"{safe_name}.json")
    state.mark_dirty()
    state.save_session()
    return _form_response()


@app.get("/form", response_model=FormResponse)
async def get_form():
    return _form_response()


@app.put("/form", response_model=FormResponse)
async def put_form(graph: dict = Body(...)):
    """replace the whole graph with a validated transport document."""
    try:
        form = parse_graph(graph)
    except SchemaError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": [str(x) for x in e.errors]})
    async with state.lock:
        state.open(form, state.name, state.form_path)
        state.mark_dirty()
    return _form_response()


@app.post("/form/load", response_model=FormResponse)
async def load_form(path: str):
    """load a form from a json file."""
    p = Path(path).expanduser()
    if not p.exists():
        raise HTTPException(status_code=404, detail=f"file not found: {path}")
    try:
        form = parse_graph(json.loads(p.read_text()))
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=422, detail=f"not json: {e}")
    except SchemaError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": [str(x) for x in e.errors]})
    state.open(form, p.stem, p)
    state.mark_clean()
    state.save_session()
    return _form_response()


@app.post("/form/save")
async def save_form(path: Optional[str] = None):
    _require_form()
    saved = state.save(Path(path).expanduser() if path else None)
    return {"path": str(saved)}


@app.get("/forms", response_model=list[FormListItem])
async def list_forms():
    return [FormListItem(**f) for f in list_saved_forms(get_forms_dir())]


@app.post("/step", response_model=StepCreated)
async def create_step(req: StepCreate):
    """add a step after a parent; the new step becomes selected."""
    step_type = _parse_type(req.type)
    async with state.lock:
        form = _require_step(req.parent_id)
        new_form, new_id = add_step(form, req.parent_id, step_type, req.choice_id)
        state.replace(new_form)
        state.snapshots.select(new_form, new_id)
    return StepCreated(step_id=new_id, form=_form_response())


@app.patch("/step/{step_id}", response_model=FormResponse)
async def edit_step(step_id: str, req: StepUpdate):
    async with state.lock:
        form = _require_step(step_id)
        try:
            new_form = update_step(form, step_id, **req.to_fields())
        except TypeError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if new_form is form and req.model_fields_set:
            raise HTTPException(status_code=400, detail="update rejected: it would break the form")
        state.replace(new_form)
    return _form_response()


@app.delete("/step/{step_id}", response_model=FormResponse)
async def remove_step(step_id: str):
    """delete a step; selection moves to the root."""
    async with state.lock:
        form = _require_step(step_id)
        if step_id == form.root_step_id:
            raise HTTPException(status_code=400, detail="cannot delete root step")
        new_form = delete_step(form, step_id)
        state.replace(new_form)
        state.snapshots.forget(step_id)
        state.snapshots.select(new_form, new_form.root_step_id)
    return _form_response()


@app.post("/step/{step_id}/select", response_model=FormResponse)
async def select_step(step_id: str):
    form = _require_step(step_id)
    state.snapshots.select(form, step_id)
    return _form_response()


@app.post("/step/{step_id}/revert", response_model=FormResponse)
async def revert_step(step_id: str):
    """discard edits to a step since it was selected."""
    async with state.lock:
        form = _require_form()
        state.replace(state.snapshots.revert(form, step_id))
    return _form_response()


@app.post("/selection/commit", response_model=FormResponse)
async def commit_selection():
    _require_form()
    state.snapshots.commit()
    return _form_response()


@app.get("/step/{step_id}/descendants")
async def get_descendants(step_id: str):
    """how many steps a delete of this step would cut off."""
    form = _require_step(step_id)
    return {"step_id": step_id, "count": count_descendants(form, step_id)}


@app.get("/step/{step_id}/chain", response_model=ChainResponse)
async def get_chain(step_id: str):
    form = _require_step(step_id)
    chain = get_linear_chain(form, step_id)
    return ChainResponse(chain=chain, draggable=draggable_ids(form, chain))


@app.get("/form/chains", response_model=list[ChainResponse])
async def get_chains():
    form = _require_form()
    return [
        ChainResponse(chain=chain, draggable=draggable_ids(form, chain))
        for chain in list_chains(form)
    ]


@app.post("/chain/reorder", response_model=FormResponse)
async def reorder(req: ReorderRequest):
    """move a step inside a rendered chain."""
    async with state.lock:
        form = _require_step(req.chain_start_id)
        chain = next((c for c in list_chains(form) if c[0] == req.chain_start_id), None)
        if chain is None:
            raise HTTPException(status_code=404, detail=f"no chain starts at {req.chain_start_id}")
        state.replace(reorder_chain(form, chain, req.step_id, req.new_index))
    return _form_response()


@app.get("/form/path")
async def get_path(selections: Optional[str] = Query(default=None, description="json object of choice selections")):
    """the path a respondent takes for the given choice selections."""
    form = _require_form()
    try:
        chosen = json.loads(selections) if selections else {}
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="selections must be a json object")
    return [
        {
            "step_id": node.step_id,
            "selected_choice_id": node.selected_choice_id,
            "selected_choice_label": node.selected_choice_label,
        }
        for node in build_path(form, chosen)
    ]


@app.get("/form/orphans")
async def get_orphans():
    return {"orphan_ids": orphan_ids(_require_form())}


@app.get("/form/export/outline", response_class=PlainTextResponse)
async def get_outline():
    return export_outline(_require_form())


@app.get("/form/export/mermaid", response_class=PlainTextResponse)
async def get_mermaid():
    return export_mermaid(_require_form())


@app.post("/step/{step_id}/images", response_model=FormResponse)
async def upload_step_image(step_id: str, request: Request, name: str = Query(...)):
    """upload the request body as an image and attach it to the step."""
    _require_step(step_id)
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="empty upload")
    content_type = request.headers.get("content-type", "application/octet-stream")
    try:
        object_path = await upload_image(state.uploader, name, data, content_type)
    except UploadError as e:
        raise HTTPException(status_code=502, detail=str(e))

    # the graph may have changed while the upload was in flight
    async with state.lock:
        form = _require_form()
        new_form = append_image(form, step_id, object_path)
        if new_form is form:
            raise HTTPException(status_code=404, detail=f"step not found: {step_id}")
        state.replace(new_form)
    return _form_response()


# --- entrypoint ---

def main(argv: Optional[list[str]] = None):
    """run the api server."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="branchform api server")
    parser.add_argument("--host", default="127.0.0.1", help="host to bind")
    parser.add_argument("--port", "-p", type=int, default=8000, help="port to bind")
    parser.add_argument("--upload-url", help=f"upload service base url (default: ${UPLOAD_URL_ENV})")
    parser.add_argument("--mock", "-m", action="store_true", help="use in-memory uploader")
    parser.add_argument("--reload", action="store_true", help="enable auto-reload")
    parser.add_argument(
        "--autosave-interval",
        type=int,
        default=DEFAULT_AUTOSAVE_INTERVAL,
        help=f"auto-save interval in seconds (default: {DEFAULT_AUTOSAVE_INTERVAL})"
    )
    parser.add_argument(
        "--no-autosave",
        action="store_true",
        help="disable auto-save"
    )

    args = parser.parse_args(argv)

    global state
    autosave = 0 if args.no_autosave else args.autosave_interval
    state = AppState(
        upload_url=args.upload_url,
        mock=args.mock,
        autosave_interval=autosave,
    )

    uvicorn.run(
        "branchform.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
